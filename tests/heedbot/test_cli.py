"""Tests for the heedbot command line."""

import json
import os
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger

from heedbot.cli import build_parser, build_provider, format_resolution, main, run_classify
from heedbot.classifier.models import FailureKind, Priority, Resolution, Verdict
from heedbot.config import load_settings
from heedbot.lab.examples import example_thread
from heedbot.observatory.module_metrics import InMemoryEventStore, ModuleMetrics
from heedbot.providers.base import LLMResponse
from heedbot.providers.litellm_provider import LiteLLMProvider
from heedbot.providers.record_replay import CacheMode, RecordReplayProvider


@dataclass
class FakeLLMResponse:
    content: str | None = ""
    finish_reason: str = "stop"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's own HEEDBOT_* / GMI_API_KEY out of the tests."""
    for name in list(os.environ):
        if name.startswith("HEEDBOT_") or name == "GMI_API_KEY":
            monkeypatch.delenv(name, raising=False)
    yield
    # main() points loguru at the captured stderr; detach it
    logger.remove()


def make_provider(*replies) -> MagicMock:
    provider = MagicMock()
    provider.chat = AsyncMock(side_effect=[FakeLLMResponse(content=r) for r in replies])
    return provider


class TestFormatResolution:
    def test_success(self):
        text = format_resolution(Resolution(verdict=Verdict(True, 90, Priority.HIGH, "Direct question.")))
        assert "Notification shown: yes" in text
        assert "Priority: HIGH" in text
        assert "failed" not in text

    def test_failure(self):
        text = format_resolution(Resolution.failure_of(FailureKind.DECODE, "no fence", repair_calls=0))
        assert "Notification shown: no" in text
        assert "Pipeline failed (decode): no fence" in text


class TestExport:
    def test_export_example(self, capsys):
        assert main(["export", "--example", "2"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert len(data) == len(example_thread("2"))
        assert data[1]["sender"] == "Marketing"


class TestClassify:
    @pytest.mark.asyncio
    async def test_bare_contract_with_examples(self, capsys):
        args = build_parser().parse_args([
            "classify", "--interest-example", "1", "--example", "1", "--contract", "bare",
        ])
        provider = make_provider("y")
        assert await run_classify(args, provider=provider) == 0
        assert "Notification shown: yes" in capsys.readouterr().out
        user = provider.chat.call_args.kwargs["messages"][1]["content"]
        assert "Running a bit late" in user.split("Previous Messages:")[0]

    @pytest.mark.asyncio
    async def test_thread_file_and_events(self, tmp_path, capsys):
        thread = tmp_path / "thread.json"
        thread.write_text(json.dumps([
            {"timestamp": "2024-06-06T15:00:00Z", "sender": "Marketing", "content": "FLASH SALE"},
        ]), encoding="utf-8")
        args = build_parser().parse_args([
            "classify", "--interest", "Only sales", "--thread", str(thread), "--show-events",
        ])
        reply = "```json\n" + json.dumps({
            "shouldReceive": "y", "confidence": 88, "priority": "M", "reason": "A sale you asked for.",
        }) + "\n```"
        assert await run_classify(args, provider=make_provider(reply)) == 0
        out = capsys.readouterr().out
        assert "Confidence: 88" in out
        assert "[classifier/conversation]" in out
        assert "[classifier/resolved " in out

    @pytest.mark.asyncio
    async def test_failure_still_exits_ok(self, capsys):
        args = build_parser().parse_args(["classify", "--interest", "x", "--example", "3"])
        assert await run_classify(args, provider=make_provider("no fence")) == 0
        assert "Pipeline failed (decode)" in capsys.readouterr().out


class TestErrors:
    def test_missing_thread_file(self, tmp_path, capsys):
        code = main(["classify", "--interest", "x", "--thread", str(tmp_path / "nope.json")])
        assert code == 2
        assert "heedbot: error" in capsys.readouterr().err

    def test_malformed_thread_file(self, tmp_path, capsys):
        thread = tmp_path / "thread.json"
        thread.write_text('{"not": "a list"}', encoding="utf-8")
        assert main(["classify", "--interest", "x", "--thread", str(thread)]) == 2
        assert "expected a JSON array" in capsys.readouterr().err

    def test_bad_env_value(self, monkeypatch, capsys):
        monkeypatch.setenv("HEEDBOT_MAX_TOKENS", "lots")
        assert main(["classify", "--interest", "x", "--example", "1"]) == 2
        assert "HEEDBOT_MAX_TOKENS" in capsys.readouterr().err

    def test_interest_required(self):
        with pytest.raises(SystemExit):
            main(["classify", "--example", "1"])

    def test_cache_mode_needs_cache_dir(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["classify", "--interest", "x", "--example", "1", "--cache-mode", "replay"])
        assert exc.value.code == 2
        assert "--cache-mode requires --cache-dir" in capsys.readouterr().err


class TestCache:
    @pytest.mark.asyncio
    async def test_cache_summary_and_events(self, tmp_path, capsys):
        args = build_parser().parse_args([
            "classify", "--interest-example", "1", "--example", "1", "--contract", "bare",
            "--show-events",
        ])
        store = InMemoryEventStore()
        real = MagicMock()
        real.chat = AsyncMock(return_value=LLMResponse(content="y"))
        provider = RecordReplayProvider(real, tmp_path, metrics=ModuleMetrics("cache", store))
        assert await run_classify(args, provider=provider) == 0
        out = capsys.readouterr().out
        assert "Cache: 0 hit(s), 1 miss(es), 1 recorded, 0 error(s)" in out
        assert store.event_types() == ["cache_miss", "cache_record"]

    def test_build_provider_wraps_with_cache(self, tmp_path):
        settings = load_settings(environ={"GMI_API_KEY": "k"})
        store = InMemoryEventStore()
        provider = build_provider(settings, tmp_path, "record", store)
        assert isinstance(provider, RecordReplayProvider)
        assert provider.mode is CacheMode.RECORD

    def test_build_provider_default_mode(self, tmp_path):
        provider = build_provider(load_settings(environ={}), tmp_path, None)
        assert provider.mode is CacheMode.REPLAY_OR_LIVE

    def test_build_provider_without_cache(self):
        provider = build_provider(load_settings(environ={}), None, None)
        assert isinstance(provider, LiteLLMProvider)
