"""Binds recognition events to segment commits and streaming translation runs."""

import asyncio
import logging
import uuid
from typing import Callable, Optional, Set

from ..models.events import RecognitionEvent
from ..models.segment import Segment, TranslationConfig, source_language_for, target_language_for
from ..storage.segment_store import SegmentStore
from .client import TranslationClient

logger = logging.getLogger(__name__)

MISSING_API_KEY_MARKER = "[Please set API Key]"
TRANSLATION_FAILED_MARKER = "[Error]"


class TranslationCoordinator:
    """Commits final utterances as segments and streams their translations into the store.

    One translation task runs per committed segment. Tasks are never cancelled
    when newer segments arrive; each only ever patches its own segment.
    """

    def __init__(self,
                 store: SegmentStore,
                 client: TranslationClient,
                 config_provider: Callable[[], TranslationConfig],
                 id_factory: Callable[[], str] = lambda: str(uuid.uuid4())):
        """Initialize coordinator.

        Args:
            store: Transcript state owner
            client: Streaming translation client
            config_provider: Returns the current TranslationConfig; called once per run
            id_factory: Produces unique segment ids
        """
        self.store = store
        self.client = client
        self.config_provider = config_provider
        self.id_factory = id_factory
        self.in_flight: Set[asyncio.Task] = set()
        self.segments_committed = 0

    def on_recognition_event(self, event: RecognitionEvent) -> None:
        """Pub/sub listener for RecognitionSource events."""
        if event.is_final:
            self.handle_final(event.text, event.language)
        else:
            self.handle_interim(event.text)

    def handle_interim(self, text: str) -> None:
        self.store.set_current_text(text)

    def handle_final(self, text: str, recognition_language: str) -> Optional[asyncio.Task]:
        """Commit a finalized utterance and start its translation.

        Must be called from within the running event loop.

        Returns:
            The translation task, or None if nothing was started
        """
        if not text.strip():
            logger.debug("Ignoring blank final result")
            return None

        segment = Segment(
            id=self.id_factory(),
            source_text=text,
            source_language=source_language_for(recognition_language),
        )
        self.store.append_segment(segment)
        self.segments_committed += 1
        logger.info(f"Committed segment {segment.id} [{segment.source_language}]: {text[:50]}")

        config = self.config_provider()
        if not config.api_key:
            logger.warning("No API key configured; skipping translation")
            self.store.patch_segment(segment.id, translation=MISSING_API_KEY_MARKER)
            return None

        target_language = target_language_for(segment.source_language)
        task = asyncio.get_running_loop().create_task(
            self._run_translation(segment.id, text, target_language, config)
        )
        self.in_flight.add(task)
        task.add_done_callback(self.in_flight.discard)
        return task

    async def _run_translation(self,
                               segment_id: str,
                               text: str,
                               target_language: str,
                               config: TranslationConfig) -> None:
        accumulated = ""
        try:
            async for fragment in self.client.translate_stream(text, target_language, config):
                accumulated += fragment
                self.store.patch_segment(segment_id, translation=accumulated)
        except Exception as e:
            logger.error(f"Translation failed for segment {segment_id}: {e}", exc_info=True)
            self.store.patch_segment(segment_id, translation=TRANSLATION_FAILED_MARKER)
            return
        logger.debug(f"Translation finished for segment {segment_id}: {accumulated[:50]}")

    async def drain(self, timeout: float = 30.0) -> bool:
        """Wait for in-flight translation runs to finish.

        Returns:
            True if all runs finished within the timeout
        """
        pending = set(self.in_flight)
        if not pending:
            return True
        logger.info(f"Waiting up to {timeout}s for {len(pending)} translation runs...")
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning(f"{len(still_pending)} translation runs still running after {timeout}s")
            return False
        return True
