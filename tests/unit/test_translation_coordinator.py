"""Unit tests for TranslationCoordinator."""

import asyncio
import itertools
from unittest.mock import Mock

import pytest

from translateboard.models.events import FINAL, INTERIM, RecognitionEvent
from translateboard.models.segment import CurrentUtterance, TranslationConfig
from translateboard.storage.segment_store import SegmentStore
from translateboard.translation.client import TranslationAPIError
from translateboard.translation.coordinator import (
    MISSING_API_KEY_MARKER,
    TRANSLATION_FAILED_MARKER,
    TranslationCoordinator,
)


def make_coordinator(client, config: TranslationConfig, store=None):
    counter = itertools.count(1)
    return TranslationCoordinator(
        store=store or SegmentStore(),
        client=client,
        config_provider=lambda: config,
        id_factory=lambda: f"seg-{next(counter)}",
    )


@pytest.mark.unit
class TestTranslationCoordinator:
    """Test cases for TranslationCoordinator."""

    @pytest.mark.asyncio
    async def test_final_commits_segment_and_streams_translation(self, fake_client_cls, translation_config):
        client = fake_client_cls({"你好": ["Hel", "lo"]})
        coordinator = make_coordinator(client, translation_config)

        task = coordinator.handle_final("你好", "zh-CN")
        segment = coordinator.store.segments[0]
        assert segment.translation == ""
        assert segment.source_language == "zh"

        await task

        assert coordinator.store.get_segment(segment.id).translation == "Hello"
        assert client.calls == [("你好", "en", translation_config)]

    @pytest.mark.asyncio
    async def test_each_patch_carries_full_accumulated_text(self, fake_client_cls, translation_config):
        client = fake_client_cls({"hello": ["你", "好", "！"]})
        store = SegmentStore()
        snapshots = []
        store.change_callback = snapshots.append
        coordinator = make_coordinator(client, translation_config, store)

        await coordinator.handle_final("hello", "en-US")

        translations = [s.segments[0].translation for s in snapshots if s.segments]
        assert translations == ["", "你", "你好", "你好！"]

    @pytest.mark.asyncio
    async def test_blank_final_is_ignored(self, fake_client_cls, translation_config):
        store = SegmentStore()
        callback = Mock()
        store.change_callback = callback
        client = fake_client_cls()
        coordinator = make_coordinator(client, translation_config, store)

        assert coordinator.handle_final("   ", "zh-CN") is None
        assert coordinator.handle_final("", "zh-CN") is None

        assert store.segments == ()
        callback.assert_not_called()
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_missing_api_key_marks_segment_without_request(self, fake_client_cls):
        client = fake_client_cls({"hello": ["never"]})
        config = TranslationConfig(api_key="", base_url="https://api.example.com/v1", model="m")
        coordinator = make_coordinator(client, config)

        assert coordinator.handle_final("hello", "en-US") is None

        assert coordinator.store.segments[0].translation == MISSING_API_KEY_MARKER
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_api_error_marks_only_that_segment(self, fake_client_cls, translation_config):
        client = fake_client_cls({"bad": ["partial"]}, error=TranslationAPIError(500, "boom"))
        coordinator = make_coordinator(client, translation_config)

        await coordinator.handle_final("bad", "en-US")
        client.error = None
        client.fragments["good"] = ["好"]
        await coordinator.handle_final("good", "en-US")

        first, second = coordinator.store.segments
        assert first.translation == TRANSLATION_FAILED_MARKER
        assert second.translation == "好"

    @pytest.mark.asyncio
    async def test_concurrent_runs_do_not_cross_write(self, fake_client_cls, translation_config):
        client = fake_client_cls({
            "first": ["1a", "1b", "1c"],
            "second": ["2a", "2b"],
        })
        coordinator = make_coordinator(client, translation_config)

        tasks = [coordinator.handle_final("first", "en-US"), coordinator.handle_final("second", "en-US")]
        assert len(coordinator.in_flight) == 2
        await asyncio.gather(*tasks)

        translations = {s.source_text: s.translation for s in coordinator.store.segments}
        assert translations == {"first": "1a1b1c", "second": "2a2b"}
        assert not coordinator.in_flight

    @pytest.mark.asyncio
    async def test_back_to_back_finals_reset_current_utterance(self, fake_client_cls, translation_config):
        client = fake_client_cls({"one": ["1"], "two": ["2"]})
        coordinator = make_coordinator(client, translation_config)

        coordinator.handle_interim("on")
        coordinator.handle_final("one", "en-US")
        assert coordinator.store.current == CurrentUtterance()
        coordinator.handle_interim("tw")
        coordinator.handle_final("two", "en-US")
        assert coordinator.store.current == CurrentUtterance()

        await coordinator.drain(timeout=1.0)
        assert [s.translation for s in coordinator.store.segments] == ["1", "2"]
        assert [s.id for s in coordinator.store.segments] == ["seg-1", "seg-2"]

    @pytest.mark.asyncio
    async def test_segment_count_matches_non_blank_finals(self, fake_client_cls, translation_config):
        coordinator = make_coordinator(fake_client_cls(), translation_config)
        texts = ["a", " ", "b", "", "c", "\t"]

        for text in texts:
            coordinator.handle_final(text, "en-US")
        await coordinator.drain(timeout=1.0)

        segments = coordinator.store.segments
        assert [s.source_text for s in segments] == ["a", "b", "c"]
        assert len({s.id for s in segments}) == 3
        assert coordinator.segments_committed == 3

    @pytest.mark.asyncio
    async def test_config_is_snapshotted_per_run(self, fake_client_cls):
        client = fake_client_cls()
        configs = [
            TranslationConfig(api_key="k1", base_url="https://a.example.com", model="m1"),
            TranslationConfig(api_key="k2", base_url="https://b.example.com", model="m2"),
        ]
        provider = Mock(side_effect=configs)
        coordinator = TranslationCoordinator(SegmentStore(), client, provider)

        coordinator.handle_final("one", "en-US")
        coordinator.handle_final("two", "en-US")
        await coordinator.drain(timeout=1.0)

        assert [call[2] for call in client.calls] == configs

    @pytest.mark.asyncio
    async def test_recognition_events_are_dispatched(self, fake_client_cls, translation_config):
        coordinator = make_coordinator(fake_client_cls({"你好": ["hi"]}), translation_config)

        coordinator.on_recognition_event(RecognitionEvent(kind=INTERIM, text="你", language="zh-CN"))
        assert coordinator.store.current.text == "你"

        coordinator.on_recognition_event(RecognitionEvent(kind=FINAL, text="你好", language="zh-CN"))
        await coordinator.drain(timeout=1.0)

        assert coordinator.store.current.text == ""
        assert coordinator.store.segments[0].translation == "hi"

    @pytest.mark.asyncio
    async def test_drain_without_runs(self, fake_client_cls, translation_config):
        coordinator = make_coordinator(fake_client_cls(), translation_config)

        assert await coordinator.drain(timeout=0.1) is True
