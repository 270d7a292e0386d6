"""Transcript state owner: committed segments plus the current utterance."""

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..models.segment import CurrentUtterance, Segment, TranscriptSnapshot

logger = logging.getLogger(__name__)

# Fields a patch may replace; id, source text, language and creation time are fixed at commit.
PATCHABLE_FIELDS = frozenset({"translation"})


class SegmentStore:
    """Single writer for the transcript.

    Holds the ordered, append-only collection of committed segments and the
    single-slot current utterance. Every mutation runs to completion before
    returning, and the optional change callback receives a snapshot after each one.
    """

    def __init__(self, change_callback: Optional[Callable[[TranscriptSnapshot], None]] = None):
        """Initialize an empty store.

        Args:
            change_callback: Called with a TranscriptSnapshot after every mutation
        """
        self.change_callback = change_callback
        self._segments: List[Segment] = []
        self._index: Dict[str, int] = {}
        self._issued_ids: Set[str] = set()
        self._current = CurrentUtterance()

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return tuple(self._segments)

    @property
    def current(self) -> CurrentUtterance:
        return self._current

    def get_segment(self, segment_id: str) -> Optional[Segment]:
        position = self._index.get(segment_id)
        if position is None:
            return None
        return self._segments[position]

    def snapshot(self) -> TranscriptSnapshot:
        return TranscriptSnapshot(segments=tuple(self._segments), current=self._current)

    def append_segment(self, segment: Segment) -> None:
        """Commit a segment and reset the current utterance.

        Raises:
            ValueError: If the segment id was already used, even by a cleared segment
        """
        if segment.id in self._issued_ids:
            raise ValueError(f"Segment id already used: {segment.id}")

        self._issued_ids.add(segment.id)
        self._index[segment.id] = len(self._segments)
        self._segments.append(segment)
        self._current = CurrentUtterance()
        logger.debug(f"Appended segment {segment.id} ({len(self._segments)} total)")
        self._notify()

    def patch_segment(self, segment_id: str, **fields: Any) -> bool:
        """Merge fields into the segment with the given id.

        A missing id is not an error: a late patch may race a clear().

        Returns:
            True if a segment was updated
        """
        illegal = set(fields) - PATCHABLE_FIELDS
        if illegal:
            raise ValueError(f"Cannot patch segment fields: {sorted(illegal)}")

        position = self._index.get(segment_id)
        if position is None:
            logger.debug(f"Ignoring patch for unknown segment {segment_id}")
            return False

        self._segments[position] = dataclasses.replace(self._segments[position], **fields)
        self._notify()
        return True

    def set_current_text(self, text: str) -> None:
        self._current = dataclasses.replace(self._current, text=text)
        self._notify()

    def set_current_translation(self, text: str) -> None:
        # Reserved for live translation of interim text; nothing populates it yet.
        self._current = dataclasses.replace(self._current, translation=text)
        self._notify()

    def clear(self) -> None:
        """Drop all segments and the current utterance. Used ids stay retired."""
        self._segments.clear()
        self._index.clear()
        self._current = CurrentUtterance()
        logger.info("Transcript cleared")
        self._notify()

    def _notify(self) -> None:
        if self.change_callback:
            self.change_callback(self.snapshot())
