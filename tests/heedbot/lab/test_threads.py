"""Tests for thread import/export and request assembly."""

import json
from datetime import datetime, timezone

import pytest

from heedbot.classifier.models import ChatMessage
from heedbot.lab.examples import (
    INTEREST_EXAMPLES,
    THREAD_EXAMPLES,
    example_interest,
    example_thread,
)
from heedbot.lab.threads import dump_thread, load_thread, parse_thread, request_from_thread


def make_msg(minute: int, sender: str = "Alice", content: str = "hi") -> ChatMessage:
    return ChatMessage(datetime(2024, 6, 6, 9, minute, tzinfo=timezone.utc), sender, content)


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseThread:
    def test_parse(self):
        text = json.dumps(THREAD_EXAMPLES["1"])
        messages = parse_thread(text)
        assert len(messages) == 3
        assert messages[0].sender == "Alice"
        assert messages[0].timestamp == datetime(2024, 6, 6, 10, 0, tzinfo=timezone.utc)

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_thread("[{")

    def test_not_an_array(self):
        with pytest.raises(ValueError, match="expected a JSON array"):
            parse_thread('{"timestamp": "2024-06-06T10:00:00Z"}')

    def test_entry_not_object(self):
        with pytest.raises(ValueError, match="Message 1"):
            parse_thread(json.dumps([THREAD_EXAMPLES["1"][0], "hello"]))

    def test_entry_missing_field(self):
        with pytest.raises(ValueError, match="Message 0"):
            parse_thread(json.dumps([{"sender": "Bob", "content": "yo"}]))

    def test_entry_bad_timestamp(self):
        with pytest.raises(ValueError):
            parse_thread(json.dumps([{"timestamp": "someday", "sender": "Bob", "content": "yo"}]))

    def test_empty_array(self):
        assert parse_thread("[]") == []


class TestDumpLoad:
    def test_dump_format(self):
        text = dump_thread([make_msg(0, "Bob", "yo")])
        assert json.loads(text) == [
            {"timestamp": "2024-06-06T09:00:00.000Z", "sender": "Bob", "content": "yo"}
        ]
        assert '\n  {' in text

    def test_dump_keeps_unicode(self):
        assert "🎉" in dump_thread(example_thread("2"))

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "thread.json"
        path.write_text(dump_thread(example_thread("3")), encoding="utf-8")
        assert load_thread(path) == example_thread("3")

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_thread(tmp_path / "nope.json")


# ── Request assembly ─────────────────────────────────────────────────────


class TestRequestFromThread:
    def test_latest_is_target(self):
        req = request_from_thread("interest", [make_msg(5), make_msg(0), make_msg(10, content="last")])
        assert req.target.content == "last"
        assert [m.timestamp.minute for m in req.context] == [0, 5]

    def test_context_bounded_to_newest(self):
        messages = [make_msg(i, content=f"m{i}") for i in range(15)]
        req = request_from_thread("interest", messages, max_context=10)
        assert req.target.content == "m14"
        assert len(req.context) == 10
        assert req.context[0].content == "m4"
        assert req.context[-1].content == "m13"

    def test_zero_context(self):
        req = request_from_thread("interest", [make_msg(0), make_msg(1)], max_context=0)
        assert req.context == ()

    def test_single_message(self):
        req = request_from_thread("interest", [make_msg(0)])
        assert req.context == ()

    def test_empty_thread(self):
        with pytest.raises(ValueError, match="No messages to classify"):
            request_from_thread("interest", [])

    def test_ties_keep_given_order(self):
        first = make_msg(0, "Alice", "first")
        second = make_msg(0, "Bob", "second")
        req = request_from_thread("interest", [first, second])
        assert req.target is second
        assert req.context == (first,)

    def test_mixed_naive_and_aware_timestamps(self):
        naive = ChatMessage(datetime(2024, 6, 6, 9, 30), "Bob", "naive, later")
        aware = make_msg(0, "Alice", "aware, earlier")
        req = request_from_thread("interest", [naive, aware])
        assert req.target.content == "naive, later"
        assert req.context == (aware,)

    def test_repeated_identical_message(self):
        a = make_msg(0, "Alice", "ping")
        b = make_msg(0, "Alice", "ping")
        req = request_from_thread("interest", [a, b])
        assert req.target is b
        assert len(req.context) == 1

    def test_interest_verbatim(self):
        req = request_from_thread("  spaced\n", [make_msg(0)])
        assert req.interest_description == "  spaced\n"


# ── Examples ─────────────────────────────────────────────────────────────


class TestExamples:
    @pytest.mark.parametrize("name", sorted(THREAD_EXAMPLES))
    def test_threads_parse(self, name):
        messages = example_thread(name)
        assert messages
        assert messages == sorted(messages, key=lambda m: m.timestamp)

    def test_interests(self):
        assert set(INTEREST_EXAMPLES) == {"1", "2", "3"}
        assert "Bob" in example_interest("1")

    def test_unknown_example(self):
        with pytest.raises(ValueError):
            example_thread("9")
        with pytest.raises(ValueError):
            example_interest("9")
