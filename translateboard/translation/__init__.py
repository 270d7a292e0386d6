"""Streaming translation for TranslateBoard."""

from .decoder import StreamingDecoder, iter_deltas
from .client import TranslationClient, TranslationAPIError, TRANSLATION_ERROR_MARKER
from .coordinator import TranslationCoordinator

__all__ = [
    "StreamingDecoder",
    "iter_deltas",
    "TranslationClient",
    "TranslationAPIError",
    "TRANSLATION_ERROR_MARKER",
    "TranslationCoordinator",
]
