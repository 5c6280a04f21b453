"""Message threads: JSON import/export and request assembly.

A thread is a JSON array of ``{"timestamp", "sender", "content"}`` objects,
timestamps in ISO-8601. The last message (by time) is the one under
judgment; everything before it is context.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from loguru import logger

from heedbot.classifier.config import DEFAULT_MAX_CONTEXT
from heedbot.classifier.models import ChatMessage, ClassificationRequest


def parse_thread(text: str) -> list[ChatMessage]:
    """Parse a JSON thread. Raises ValueError on malformed input."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Thread is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError("Invalid thread format: expected a JSON array of messages")

    messages: list[ChatMessage] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Message {i} is not an object")
        try:
            messages.append(ChatMessage.from_dict(entry))
        except (KeyError, ValueError) as e:
            raise ValueError(f"Message {i} is invalid: {e}") from e
    return messages


def load_thread(path: Path | str) -> list[ChatMessage]:
    """Load a JSON thread from disk."""
    return parse_thread(Path(path).read_text(encoding="utf-8"))


def dump_thread(messages: Iterable[ChatMessage]) -> str:
    """Serialize messages in the thread export format (2-space indent)."""
    return json.dumps([m.to_dict() for m in messages], indent=2, ensure_ascii=False)


def request_from_thread(
    interest_description: str,
    messages: Iterable[ChatMessage],
    max_context: int = DEFAULT_MAX_CONTEXT,
) -> ClassificationRequest:
    """Build a request from a thread, keeping at most ``max_context`` prior messages.

    Messages are ordered by timestamp (ties keep their given order). The
    newest message is the target; the newest ``max_context`` of the rest
    become context, oldest first.
    """
    ordered = sorted(messages, key=lambda m: m.timestamp)
    if not ordered:
        raise ValueError("No messages to classify")

    target = ordered[-1]
    previous = ordered[:-1]
    if max_context <= 0:
        context: list[ChatMessage] = []
    else:
        context = previous[-max_context:]

    dropped = len(previous) - len(context)
    if dropped:
        logger.debug(f"Thread: dropped {dropped} oldest message(s), keeping {len(context)} for context")

    return ClassificationRequest(
        interest_description=interest_description,
        target=target,
        context=tuple(context),
    )
