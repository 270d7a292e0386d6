"""Data models for the TranslateBoard application."""

from .segment import (
    Segment,
    CurrentUtterance,
    TranscriptSnapshot,
    TranslationConfig,
    source_language_for,
    target_language_for,
)
from .events import RecognitionEvent, SessionEvent

__all__ = [
    "Segment",
    "CurrentUtterance",
    "TranscriptSnapshot",
    "TranslationConfig",
    "source_language_for",
    "target_language_for",
    "RecognitionEvent",
    "SessionEvent",
]
