"""Observatory — structured diagnostics for the classification pipeline."""

from heedbot.observatory.module_metrics import (
    InMemoryEventStore,
    ModuleEvent,
    ModuleMetrics,
    NullModuleMetrics,
)

__all__ = ["InMemoryEventStore", "ModuleEvent", "ModuleMetrics", "NullModuleMetrics"]
