"""Terminal presentation for TranslateBoard."""

from .transcript_screen import TranscriptScreen

__all__ = [
    "TranscriptScreen",
]
