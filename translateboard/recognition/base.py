"""Abstract base class for continuous speech recognition engines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
import logging

from ..models.segment import DEFAULT_RECOGNITION_LANGUAGE

logger = logging.getLogger(__name__)

# Error codes passed to on_error
NOT_ALLOWED = "not-allowed"
NETWORK = "network"
AUDIO_CAPTURE = "audio-capture"
NO_SPEECH = "no-speech"
ABORTED = "aborted"


class EngineAlreadyStartedError(RuntimeError):
    """start() was called while a session is still active."""


@dataclass(frozen=True)
class EngineResult:
    """One recognition hypothesis within a result batch."""
    transcript: str
    is_final: bool


class AbstractRecognitionEngine(ABC):
    """Command and callback surface of a continuous recognizer.

    Callbacks are always invoked on the asyncio event loop thread. A session
    begins with on_start and always finishes with exactly one on_end, whether
    it was stopped, aborted, or terminated by the engine itself.
    """

    def __init__(self,
                 language: str = DEFAULT_RECOGNITION_LANGUAGE,
                 continuous: bool = True,
                 interim_results: bool = True):
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results

        self.on_start: Optional[Callable[[], None]] = None
        self.on_result: Optional[Callable[[int, Sequence[EngineResult]], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    @abstractmethod
    def start(self) -> None:
        """Begin a recognition session.

        Raises:
            EngineAlreadyStartedError: If a session is already active
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Finish the session, delivering pending results before on_end."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Finish the session immediately, discarding pending results."""
        pass

    def _dispatch(self, callback: Optional[Callable], *args) -> None:
        """Deliver a callback. Threaded engines override this to hop onto the loop."""
        if callback:
            callback(*args)

    def _emit_start(self) -> None:
        self._dispatch(self.on_start)

    def _emit_result(self, result_index: int, results: Sequence[EngineResult]) -> None:
        self._dispatch(self.on_result, result_index, list(results))

    def _emit_end(self) -> None:
        self._dispatch(self.on_end)

    def _emit_error(self, code: str) -> None:
        self._dispatch(self.on_error, code)
