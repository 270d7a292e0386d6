"""Transcript state storage."""

from .segment_store import SegmentStore
from .publisher import TranscriptPublisher

__all__ = [
    "SegmentStore",
    "TranscriptPublisher",
]
