"""Data models for the notification classifier.

Defines the chat message and request shapes handed in by callers, the
typed Verdict handed back, and the Conversation passed between the prompt
builder and the verdict resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Priority(str, Enum):
    """Notification priority, valued by the single-letter code the model emits."""
    HIGH = "H"
    MEDIUM = "M"
    LOW = "L"


class OutputContract(str, Enum):
    """Output format the system instruction asks the model to follow."""
    BARE_TOKEN = "bare"      # exactly "y" or "n"
    FENCED_JSON = "json"     # one JSON object inside a ```json fence


class FailureKind(str, Enum):
    """Why the resolver fell back to the default verdict."""
    TRANSPORT = "transport"
    DECODE = "decode"
    INTERNAL = "internal"


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-06-06T10:00:00.000Z."""
    return _as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z. Naive → UTC."""
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class ChatMessage:
    """A single chat message."""

    timestamp: datetime
    sender: str
    content: str

    def __post_init__(self) -> None:
        # Stored in UTC so naive and aware messages order together
        object.__setattr__(self, "timestamp", _as_utc(self.timestamp))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for thread export."""
        return {
            "timestamp": format_timestamp(self.timestamp),
            "sender": self.sender,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ChatMessage:
        """Deserialize from thread export. Raises KeyError/ValueError on bad input."""
        timestamp = d["timestamp"]
        if not isinstance(timestamp, str):
            raise ValueError(f"timestamp must be an ISO-8601 string, got {timestamp!r}")
        return cls(
            timestamp=parse_timestamp(timestamp),
            sender=str(d.get("sender", "")),
            content=str(d.get("content", "")),
        )


@dataclass(frozen=True)
class ClassificationRequest:
    """What to classify: the interest description, the target, and prior context.

    ``context`` is oldest first and never contains ``target``. Callers
    bound its length; the builder sends whatever it is given.
    """

    interest_description: str
    target: ChatMessage
    context: tuple[ChatMessage, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple so requests stay hashable
        object.__setattr__(self, "context", tuple(self.context))
        if any(m is self.target for m in self.context):
            raise ValueError("target message must not appear in context")


@dataclass(frozen=True)
class Verdict:
    """Typed classification result."""

    should_notify: bool
    confidence: int
    priority: Priority
    reason: str

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within 0..100, got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_notify": self.should_notify,
            "confidence": self.confidence,
            "priority": self.priority.name,
            "reason": self.reason,
        }


FAILURE_REASON = "Classification could not be completed, so this message was not flagged for you."

# Every failure path returns this exact value
DEFAULT_VERDICT = Verdict(
    should_notify=False,
    confidence=0,
    priority=Priority.LOW,
    reason=FAILURE_REASON,
)


@dataclass(frozen=True)
class Conversation:
    """System instruction + single user turn, tagged with its output contract."""

    system: str
    user: str
    contract: OutputContract = OutputContract.FENCED_JSON

    def to_messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


@dataclass(frozen=True)
class Resolution:
    """A verdict plus whether it came from a pipeline failure.

    ``verdict`` alone cannot tell a failure apart from a genuine "no";
    ``failed`` can.
    """

    verdict: Verdict
    failure: FailureKind | None = None
    detail: str = ""
    repair_calls: int = 0
    models_used: tuple[str, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> bool:
        return self.failure is not None

    @classmethod
    def failure_of(
        cls,
        kind: FailureKind,
        detail: str,
        repair_calls: int = 0,
        models_used: tuple[str, ...] = (),
    ) -> Resolution:
        return cls(
            verdict=DEFAULT_VERDICT,
            failure=kind,
            detail=detail,
            repair_calls=repair_calls,
            models_used=models_used,
        )
