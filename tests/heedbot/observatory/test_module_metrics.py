"""Tests for ModuleMetrics and InMemoryEventStore."""

from unittest.mock import MagicMock

from heedbot.observatory.module_metrics import (
    InMemoryEventStore,
    ModuleMetrics,
    NullModuleMetrics,
)


class TestModuleMetrics:
    def test_record_to_store(self):
        store = InMemoryEventStore()
        metrics = ModuleMetrics("classifier", store)
        metrics.record("reply", request_id="r1", raw="y")
        event = store.events[0]
        assert event.module == "classifier"
        assert event.event_type == "reply"
        assert event.data == {"request_id": "r1", "raw": "y"}
        assert event.duration_ms is None

    def test_long_values_kept_whole_in_store(self):
        store = InMemoryEventStore()
        raw = "x" * 5000
        ModuleMetrics("classifier", store).record("reply", raw=raw)
        assert store.events[0].data["raw"] == raw

    def test_span_records_duration_and_fields(self):
        store = InMemoryEventStore()
        metrics = ModuleMetrics("classifier", store)
        with metrics.span("resolved", request_id="r1") as span_data:
            span_data["failure"] = None
        event = store.of_type("resolved")[0]
        assert event.duration_ms is not None and event.duration_ms >= 0
        assert event.data == {"request_id": "r1", "failure": None}

    def test_span_records_on_exception(self):
        store = InMemoryEventStore()
        metrics = ModuleMetrics("classifier", store)
        try:
            with metrics.span("resolved"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert store.event_types() == ["resolved"]

    def test_store_errors_swallowed(self):
        store = MagicMock()
        store.record_module_event.side_effect = OSError("disk full")
        ModuleMetrics("classifier", store).record("reply", raw="y")

    def test_no_store(self):
        metrics = ModuleMetrics("classifier")
        metrics.record("reply", raw="y")
        assert metrics.store is None
        assert metrics.module_name == "classifier"


class TestInMemoryEventStore:
    def test_bounded(self):
        store = InMemoryEventStore(max_events=3)
        metrics = ModuleMetrics("m", store)
        for i in range(5):
            metrics.record("e", i=i)
        assert [e.data["i"] for e in store.events] == [2, 3, 4]

    def test_of_type_and_clear(self):
        store = InMemoryEventStore()
        metrics = ModuleMetrics("m", store)
        metrics.record("a")
        metrics.record("b")
        metrics.record("a")
        assert len(store.of_type("a")) == 2
        store.clear()
        assert store.events == []


class TestNullModuleMetrics:
    def test_noop(self):
        metrics = NullModuleMetrics()
        metrics.record("anything", x=1)
        with metrics.span("s") as span_data:
            span_data["k"] = "v"
        assert metrics.store is None
