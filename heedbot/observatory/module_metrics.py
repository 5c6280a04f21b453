"""Structured per-module event recording.

Each component gets a ModuleMetrics instance scoped to its name. Events
go to loguru (always, at DEBUG) and to an optional event store that keeps
them queryable in memory. This is the advisory diagnostics channel: no
caller depends on it for correctness.

Design choices:
    - Module-scoped: each instance has a fixed module_name
    - Correlation: callers pass a request_id field; the instance itself
      holds no per-request state, so one instance serves concurrent requests
    - span() context manager: paired start/complete with auto duration
    - Failure-safe: recording errors are logged, never raised
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Protocol

from loguru import logger

# Long payloads (raw model text) are clipped in log lines only; the store keeps them whole
_LOG_VALUE_CHARS = 200


class EventStore(Protocol):
    """Anything that can persist a module event."""

    def record_module_event(
        self,
        timestamp: str,
        module: str,
        event_type: str,
        data: dict[str, Any] | None,
        duration_ms: int | None,
    ) -> None:
        ...


@dataclass
class ModuleEvent:
    """One recorded event."""
    timestamp: str
    module: str
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    duration_ms: int | None = None


class InMemoryEventStore:
    """Bounded in-memory event store (oldest events dropped first)."""

    def __init__(self, max_events: int = 1000) -> None:
        self._max = max_events
        self.events: list[ModuleEvent] = []

    def record_module_event(
        self,
        timestamp: str,
        module: str,
        event_type: str,
        data: dict[str, Any] | None,
        duration_ms: int | None,
    ) -> None:
        self.events.append(ModuleEvent(
            timestamp=timestamp,
            module=module,
            event_type=event_type,
            data=dict(data or {}),
            duration_ms=duration_ms,
        ))
        if len(self.events) > self._max:
            del self.events[: len(self.events) - self._max]

    def of_type(self, event_type: str) -> list[ModuleEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def clear(self) -> None:
        self.events.clear()


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _LOG_VALUE_CHARS:
        return value[:_LOG_VALUE_CHARS] + "…"
    return value


class ModuleMetrics:
    """Structured per-module event recording.

    Usage::

        metrics = ModuleMetrics("classifier", InMemoryEventStore())

        # Fire-and-forget event
        metrics.record("reply", request_id=rid, call="classify", raw=text)

        # Paired span with automatic duration
        with metrics.span("resolved", request_id=rid) as span_data:
            ... # do work
            span_data["failed"] = False
    """

    def __init__(self, module_name: str, store: EventStore | None = None) -> None:
        self._module = module_name
        self._store = store

    @property
    def module_name(self) -> str:
        """The module this metrics instance is scoped to."""
        return self._module

    @property
    def store(self) -> EventStore | None:
        return self._store

    def record(
        self,
        event_type: str,
        duration_ms: int | None = None,
        **data: Any,
    ) -> None:
        """Record a module event to the log and the store.

        Args:
            event_type: Module-specific event (e.g. "reply", "decode_failed").
            duration_ms: Optional duration for timed events.
            **data: Event-specific payload.
        """
        fields = " ".join(f"{k}={_clip(v)!r}" for k, v in data.items())
        timing = f" ({duration_ms}ms)" if duration_ms is not None else ""
        logger.debug(f"[{self._module}] {event_type}{timing} {fields}".rstrip())

        if self._store:
            try:
                self._store.record_module_event(
                    timestamp=datetime.now().isoformat(),
                    module=self._module,
                    event_type=event_type,
                    data=data if data else None,
                    duration_ms=duration_ms,
                )
            except Exception as e:
                logger.debug(f"ModuleMetrics.record failed ({self._module}/{event_type}): {e}")

    @contextmanager
    def span(self, event_type: str, **data: Any) -> Iterator[dict[str, Any]]:
        """Paired start/complete event with automatic duration tracking.

        Yields a mutable dict — add keys to it inside the block and
        they'll be included in the recorded event.
        """
        extra: dict[str, Any] = dict(data)
        start = time.perf_counter()
        try:
            yield extra
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            self.record(event_type, duration_ms=elapsed_ms, **extra)


class NullModuleMetrics(ModuleMetrics):
    """No-op metrics for when diagnostics are not wanted.

    All methods are silent no-ops. Used as a safe default so components
    don't need to check ``if self._metrics:`` everywhere.
    """

    def __init__(self) -> None:
        super().__init__("null", store=None)

    def record(self, event_type: str, duration_ms: int | None = None, **data: Any) -> None:
        pass

    @contextmanager
    def span(self, event_type: str, **data: Any) -> Iterator[dict[str, Any]]:
        extra: dict[str, Any] = dict(data)
        yield extra
