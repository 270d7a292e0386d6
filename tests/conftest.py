"""Pytest configuration and fixtures for TranslateBoard tests."""

import asyncio
import json
import logging
import tempfile
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from translateboard.models.segment import TranslationConfig
from translateboard.recognition.base import (
    AbstractRecognitionEngine,
    EngineAlreadyStartedError,
    EngineResult,
)


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network or audio hardware")
    config.addinivalue_line("markers", "integration: tests that wire several components together")


class FakeRecognitionEngine(AbstractRecognitionEngine):
    """Engine whose callbacks are fired by the test instead of by audio."""

    def __init__(self, language: str = "zh-CN"):
        super().__init__(language)
        self.active = False
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0
        self.started_languages: List[str] = []
        self.fail_next_start: Optional[Exception] = None

    def start(self) -> None:
        if self.active:
            raise EngineAlreadyStartedError("fake session already active")
        if self.fail_next_start:
            error, self.fail_next_start = self.fail_next_start, None
            raise error
        self.active = True
        self.start_calls += 1
        self.started_languages.append(self.language)

    def stop(self) -> None:
        self.stop_calls += 1

    def abort(self) -> None:
        self.abort_calls += 1

    def fire_start(self) -> None:
        self._emit_start()

    def fire_results(self, *results, result_index: int = 0) -> None:
        self._emit_result(result_index, [EngineResult(text, is_final) for text, is_final in results])

    def fire_end(self) -> None:
        self.active = False
        self._emit_end()

    def fire_error(self, code: str) -> None:
        self._emit_error(code)


class FakeTranslationClient:
    """Stands in for TranslationClient; yields scripted fragments per source text."""

    def __init__(self, fragments: Optional[Dict[str, List[str]]] = None, error: Optional[Exception] = None):
        self.fragments = fragments or {}
        self.error = error
        self.calls = []

    async def translate_stream(self, text, target_language, config):
        self.calls.append((text, target_language, config))
        for fragment in self.fragments.get(text, []):
            # Yield control so concurrent runs interleave.
            await asyncio.sleep(0)
            yield fragment
        if self.error:
            raise self.error


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_engine():
    return FakeRecognitionEngine()


@pytest.fixture
def translation_config():
    return TranslationConfig(api_key="sk-test", base_url="https://api.example.com/v1", model="test-model")


def sse_line(content: str) -> bytes:
    """One event-stream line carrying a content delta."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


SSE_DONE = b"data: [DONE]\n\n"


@pytest.fixture
def event_stream_server():
    """Factory for a local chat completions endpoint serving a scripted event stream.

    Usage:
        async with event_stream_server([chunk, ...]) as (base_url, requests): ...
    """

    @asynccontextmanager
    async def _serve(chunks: List[bytes], status: int = 200, error_body: str = "",
                     drop_connection: bool = False, path: str = "/v1/chat/completions"):
        requests = []

        async def handler(request: web.Request) -> web.StreamResponse:
            requests.append({"headers": dict(request.headers), "json": await request.json()})
            if status != 200:
                return web.Response(text=error_body, status=status)

            response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
            response.enable_chunked_encoding()
            await response.prepare(request)
            for chunk in chunks:
                await response.write(chunk)
                await asyncio.sleep(0.01)
            if drop_connection:
                request.transport.close()
                return response
            await response.write_eof()
            return response

        app = web.Application()
        app.router.add_post(path, handler)
        server = TestServer(app)
        await server.start_server()
        try:
            yield str(server.make_url("/v1")), requests
        finally:
            await server.close()

    return _serve


@pytest.fixture
def sse():
    """Event-stream body builders: sse.line(content), sse.done."""

    class _SSE:
        line = staticmethod(sse_line)
        done = SSE_DONE

    return _SSE


@pytest.fixture
def fake_client_cls():
    return FakeTranslationClient


@pytest.fixture
def sample_audio_chunk():
    """A 1600-sample PCM16 chunk with a known peak of half scale."""
    samples = np.zeros(1600, dtype=np.int16)
    samples[100] = 16384
    samples[200] = -8192
    return samples.tobytes()


@pytest.fixture
def mock_pyaudio(sample_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = sample_audio_chunk
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
