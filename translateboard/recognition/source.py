"""Recognition source: turns engine callbacks into interim/final events and keeps listening."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from ..models.events import FINAL, INTERIM, RecognitionEvent, SessionEvent
from ..models.segment import DEFAULT_RECOGNITION_LANGUAGE, source_language_for
from .base import (
    ABORTED,
    NO_SPEECH,
    NOT_ALLOWED,
    AbstractRecognitionEngine,
    EngineAlreadyStartedError,
    EngineResult,
)

logger = logging.getLogger(__name__)

# Delay before restarting after a session that reported an error, doubled per
# consecutive failure.
RESTART_BACKOFF_SECONDS = 0.5
RESTART_BACKOFF_MAX_SECONDS = 30.0
# Delay before retrying a restart the engine refused because it was still busy.
RESTART_RETRY_SECONDS = 0.05


class RecognitionState(Enum):
    """Lifecycle of the recognition session."""
    IDLE = "idle"
    LISTENING = "listening"
    RESTARTING = "restarting"


class RecognitionSource:
    """Drives a recognition engine and restarts it whenever a session ends unexpectedly.

    Restarts are triggered only by the engine's end callback, so the previous
    session is always torn down before a new one begins. After a session that
    reported an error the restart is delayed, with the delay doubling per
    consecutive failed session. A permission denial
    clears the intent to listen and is the only condition that stops auto-restart.
    """

    def __init__(self,
                 engine: AbstractRecognitionEngine,
                 callback: Callable[[RecognitionEvent], None],
                 status_callback: Optional[Callable[[SessionEvent], None]] = None,
                 language: str = DEFAULT_RECOGNITION_LANGUAGE):
        """Initialize recognition source.

        Args:
            engine: Recognition engine to drive
            callback: Receives interim and final RecognitionEvents
            status_callback: Receives SessionEvents for the presentation layer
            language: Initial recognition language tag, e.g. 'zh-CN'
        """
        source_language_for(language)
        self.engine = engine
        self.callback = callback
        self.status_callback = status_callback
        self.language = language

        self.state = RecognitionState.IDLE
        self.intent_to_listen = False
        self.permission_denied = False
        self.last_error: Optional[str] = None
        self.restart_count = 0
        self._session_language: Optional[str] = None
        self.consecutive_failures = 0
        self._pending_restart: Optional[asyncio.TimerHandle] = None

        engine.continuous = True
        engine.interim_results = True
        engine.on_start = self._on_start
        engine.on_result = self._on_result
        engine.on_end = self._on_end
        engine.on_error = self._on_error

    @property
    def is_listening(self) -> bool:
        return self.state is not RecognitionState.IDLE

    def configure(self, language: str) -> None:
        """Set the recognition language.

        While listening, the running session is stopped and the auto-restart
        brings it back with the new language. While idle, the language is
        applied on the next start().
        """
        source_language_for(language)
        if language == self.language:
            return

        logger.info(f"Recognition language changed: {self.language} -> {language}")
        self.language = language
        if self.intent_to_listen and self.state is RecognitionState.LISTENING:
            self.engine.stop()

    def start(self) -> None:
        """Start listening. Calling it while already listening does nothing."""
        if self.intent_to_listen:
            logger.warning("start called while running; ignoring")
            return

        self.intent_to_listen = True
        self.permission_denied = False
        self.last_error = None
        self.consecutive_failures = 0
        if self.state is RecognitionState.IDLE:
            self.state = RecognitionState.LISTENING
            self._start_engine()
        else:
            # The previous session is still ending; its end callback restarts it.
            logger.info("Previous session still ending; will resume on end")

    def stop(self) -> None:
        """Stop listening and request termination of the running session."""
        self.intent_to_listen = False
        if self._pending_restart:
            # No session is running; the restart was only scheduled.
            self._cancel_pending_restart()
            self.state = RecognitionState.IDLE
            logger.info("Recognition stopped before pending restart")
            self._publish_status("stopped")
        elif self.state is not RecognitionState.IDLE:
            logger.info("Stopping recognition")
            self.engine.stop()

    def _start_engine(self) -> None:
        self.engine.language = self.language
        self._session_language = self.language
        try:
            self.engine.start()
        except EngineAlreadyStartedError as e:
            if self.state is RecognitionState.RESTARTING:
                logger.info(f"Engine still tearing down ({e}); retrying restart")
                self._schedule_restart(RESTART_RETRY_SECONDS)
            else:
                logger.warning(f"Recognition engine already started: {e}")
        except Exception as e:
            logger.error(f"Failed to start recognition engine: {e}", exc_info=True)
            self.intent_to_listen = False
            self.state = RecognitionState.IDLE
            self.last_error = str(e)
            self._publish_status("error", error=self.last_error)

    def _on_start(self) -> None:
        self.state = RecognitionState.LISTENING
        logger.info(f"Recognition started ({self._session_language})")
        self._publish_status("started", language=self._session_language)
        if self.intent_to_listen and self._session_language != self.language:
            # Language changed while the restart was in flight.
            self.engine.stop()

    def _on_result(self, result_index: int, results: Sequence[EngineResult]) -> None:
        self.consecutive_failures = 0
        language = self._session_language or self.language
        interim = ""
        for result in results[result_index:]:
            if result.is_final:
                self.callback(RecognitionEvent(kind=FINAL, text=result.transcript, language=language))
            else:
                interim += result.transcript
        if interim:
            self.callback(RecognitionEvent(kind=INTERIM, text=interim, language=language))

    def _on_end(self) -> None:
        if self.intent_to_listen:
            self.state = RecognitionState.RESTARTING
            self.restart_count += 1
            logger.info(f"Recognition ended; auto-restarting (restart #{self.restart_count})")
            self._publish_status("restarting", restart_count=self.restart_count)
            if self.consecutive_failures:
                delay = min(RESTART_BACKOFF_MAX_SECONDS,
                            RESTART_BACKOFF_SECONDS * 2 ** (self.consecutive_failures - 1))
                logger.info(f"Delaying restart {delay:.1f}s after {self.consecutive_failures} failed sessions")
                self._schedule_restart(delay)
            else:
                self._start_engine()
        else:
            self.state = RecognitionState.IDLE
            logger.info("Recognition ended")
            self._publish_status("stopped")

    def _on_error(self, code: str) -> None:
        if code == NOT_ALLOWED:
            logger.error("Recognition permission denied; auto-restart disabled")
            self.intent_to_listen = False
            self.permission_denied = True
            self.last_error = code
            self._publish_status("error", error=code)
        elif code in (NO_SPEECH, ABORTED):
            logger.debug(f"Recognition error (ignored): {code}")
        else:
            logger.warning(f"Recognition error: {code}")
            self.last_error = code
            self.consecutive_failures += 1

    def _schedule_restart(self, delay: float) -> None:
        self._cancel_pending_restart()
        loop = asyncio.get_running_loop()
        self._pending_restart = loop.call_later(delay, self._run_pending_restart)

    def _cancel_pending_restart(self) -> None:
        if self._pending_restart:
            self._pending_restart.cancel()
            self._pending_restart = None

    def _run_pending_restart(self) -> None:
        self._pending_restart = None
        if self.intent_to_listen and self.state is RecognitionState.RESTARTING:
            self._start_engine()

    def _publish_status(self, event_type: str, **metadata) -> None:
        if self.status_callback:
            self.status_callback(SessionEvent(event_type=event_type, metadata=metadata))
