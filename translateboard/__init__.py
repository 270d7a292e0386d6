"""TranslateBoard: live Chinese/English speech translation."""
