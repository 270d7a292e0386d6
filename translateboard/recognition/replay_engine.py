"""Recognition engine that replays a transcript file instead of listening to a microphone."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..models.segment import DEFAULT_RECOGNITION_LANGUAGE
from .base import AbstractRecognitionEngine, EngineAlreadyStartedError, EngineResult

logger = logging.getLogger(__name__)


class ReplayRecognitionEngine(AbstractRecognitionEngine):
    """Replays lines of text as if they were being spoken.

    Each line is revealed word by word as interim results and then delivered
    as a final result; the whole line takes `interval` seconds. A session ends
    after the last line, and the next session starts again from the top.
    """

    def __init__(self,
                 lines: Sequence[str],
                 interval: float = 1.0,
                 language: str = DEFAULT_RECOGNITION_LANGUAGE):
        super().__init__(language)
        self.lines = [line.strip() for line in lines if line.strip()]
        if not self.lines:
            raise ValueError("Replay transcript has no text")
        self.interval = interval
        self.sessions_started = 0

        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self._handle: Optional[asyncio.Handle] = None
        self._steps: List[Tuple[str, bool]] = []
        self._line_started = False

    @classmethod
    def from_file(cls, path: str, interval: float = 1.0,
                  language: str = DEFAULT_RECOGNITION_LANGUAGE) -> "ReplayRecognitionEngine":
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
        logger.info(f"Loaded {len(lines)} replay lines from {path}")
        return cls(lines, interval=interval, language=language)

    def _build_steps(self) -> List[Tuple[str, bool]]:
        steps = []
        for line in self.lines:
            words = line.split()
            for count in range(1, len(words)):
                steps.append((" ".join(words[:count]), False))
            steps.append((line, True))
        return steps

    def _step_delay(self, text: str) -> float:
        words = max(1, len(text.split()))
        return self.interval / words

    def start(self) -> None:
        if self._running:
            raise EngineAlreadyStartedError("Replay session already active")
        self.loop = asyncio.get_running_loop()
        self._running = True
        self.sessions_started += 1
        self._steps = self._build_steps()
        self._handle = self.loop.call_soon(self._begin)

    def _begin(self) -> None:
        self._emit_start()
        self._schedule_next()

    def _schedule_next(self) -> None:
        if not self._steps:
            self._handle = self.loop.call_soon(self._finish)
            return
        text, _ = self._steps[0]
        self._handle = self.loop.call_later(self._step_delay(text), self._advance)

    def _advance(self) -> None:
        text, is_final = self._steps.pop(0)
        self._line_started = not is_final
        self._emit_result(0, [EngineResult(transcript=text, is_final=is_final)])
        self._schedule_next()

    def _finish(self) -> None:
        self._running = False
        self._handle = None
        self._emit_end()

    def stop(self) -> None:
        if not self._running:
            return
        if self._handle:
            self._handle.cancel()
        # A stopped session still finalizes the line it was in the middle of.
        if self._line_started:
            line = next(text for text, is_final in self._steps if is_final)
            self._emit_result(0, [EngineResult(transcript=line, is_final=True)])
        self._line_started = False
        self._steps = []
        self._handle = self.loop.call_soon(self._finish)

    def abort(self) -> None:
        if not self._running:
            return
        if self._handle:
            self._handle.cancel()
        self._line_started = False
        self._steps = []
        self._handle = self.loop.call_soon(self._finish)
