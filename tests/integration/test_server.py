"""Integration tests for the Server wiring in translateboard.main."""

import asyncio
import logging
from pathlib import Path

import pytest
import yaml

from translateboard.config import API_KEY_ENV_VAR
from translateboard.main import Server


@pytest.fixture
def replay_server_factory(temp_data_dir, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    data_dir = Path(temp_data_dir)
    (data_dir / "talk.txt").write_text("good morning everyone\nlet us begin\n", encoding="utf-8")

    def _create(base_url: str, api_key: str = "sk-test") -> Server:
        config_path = data_dir / "translateboard.yaml"
        config_path.write_text(yaml.safe_dump({
            "translation": {"api_key": api_key, "base_url": base_url, "model": "test-model"},
            "recognition": {"engine": "replay", "language": "en-US",
                            "replay_file": "talk.txt", "replay_interval_seconds": 0.05},
            "logging": {"file_path": "logs/translateboard.log", "console_output": False},
        }), encoding="utf-8")
        server = Server(str(config_path), "DEBUG")
        server.init(show_screen=False)
        return server

    yield _create

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            root_logger.removeHandler(handler)


@pytest.mark.integration
class TestServer:

    @pytest.mark.asyncio
    async def test_run_translates_replayed_lines(self, replay_server_factory, event_stream_server, sse, temp_data_dir):
        async with event_stream_server([sse.line("早上好"), sse.done]) as (base_url, requests):
            server = replay_server_factory(base_url)
            await server.run(duration=1)

        segments = server.store.segments
        assert segments[0].source_text == "good morning everyone"
        assert segments[0].source_language == "en"
        assert segments[0].translation == "早上好"
        assert server.coordinator.in_flight == set()
        assert server.http_session is None
        assert requests[0]["json"]["model"] == "test-model"
        assert (Path(temp_data_dir) / "logs" / "translateboard.log").exists()

    @pytest.mark.asyncio
    async def test_request_exit_stops_before_duration(self, replay_server_factory, event_stream_server, sse):
        async with event_stream_server([sse.done]) as (base_url, _):
            server = replay_server_factory(base_url)
            loop = asyncio.get_running_loop()
            loop.call_later(0.2, server.request_exit)

            started = loop.time()
            await server.run(duration=30)

        assert loop.time() - started < 5
        assert server.source.intent_to_listen is False

    def test_set_language_persists_and_clear_transcript(self, replay_server_factory, temp_data_dir):
        server = replay_server_factory("https://api.example.com/v1")

        server.set_language("zh-CN")
        server.clear_transcript()

        saved = yaml.safe_load((Path(temp_data_dir) / "translateboard.yaml").read_text(encoding="utf-8"))
        assert saved["recognition"]["language"] == "zh-CN"
        assert server.source.language == "zh-CN"
        assert server.store.segments == ()
