"""Speech recognition sources and engines."""

from .base import AbstractRecognitionEngine, EngineAlreadyStartedError, EngineResult
from .source import RecognitionSource, RecognitionState
from .publisher import RecognitionPublisher
from .replay_engine import ReplayRecognitionEngine

__all__ = [
    "AbstractRecognitionEngine",
    "EngineAlreadyStartedError",
    "EngineResult",
    "RecognitionSource",
    "RecognitionState",
    "RecognitionPublisher",
    "ReplayRecognitionEngine",
]
