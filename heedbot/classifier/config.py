"""Classifier configuration.

Passed explicitly into the resolver so tests and environments can override
models and decoding parameters without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from heedbot.classifier.models import OutputContract

# Defaults match the models the classifier was tuned against.
DEFAULT_CLASSIFICATION_MODEL = "deepseek-ai/DeepSeek-R1-Distill-Qwen-7B"
DEFAULT_REPAIR_MODEL = "meta-llama/Llama-4-Scout-17B-16E-Instruct"

DEFAULT_MAX_TOKENS = 1000
DEFAULT_REPAIR_MAX_TOKENS = 100
DEFAULT_TEMPERATURE = 0.2       # low: focused, near-deterministic output
DEFAULT_MAX_REPAIRS = 3         # repair calls per request, bare-token contract only
DEFAULT_MAX_CONTEXT = 10        # prior messages kept by request_from_thread


class InvalidConfigField(ValueError):
    """A config value is out of range. ``field`` names the offending attribute."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field} {message}")
        self.field = field


@dataclass(frozen=True)
class ClassifierConfig:
    """Models and decoding parameters for one classifier instance."""

    classification_model: str = DEFAULT_CLASSIFICATION_MODEL
    repair_model: str = DEFAULT_REPAIR_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    repair_max_tokens: int = DEFAULT_REPAIR_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    max_repairs: int = DEFAULT_MAX_REPAIRS
    max_context: int = DEFAULT_MAX_CONTEXT
    contract: OutputContract = OutputContract.FENCED_JSON

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise InvalidConfigField("max_tokens", f"must be positive, got {self.max_tokens}")
        if self.repair_max_tokens < 1:
            raise InvalidConfigField("repair_max_tokens", f"must be positive, got {self.repair_max_tokens}")
        if self.max_repairs < 0:
            raise InvalidConfigField("max_repairs", f"must be >= 0, got {self.max_repairs}")
        if self.max_context < 0:
            raise InvalidConfigField("max_context", f"must be >= 0, got {self.max_context}")
        if not 0.0 <= self.temperature <= 2.0:
            raise InvalidConfigField("temperature", f"must be within 0.0..2.0, got {self.temperature}")

    def with_contract(self, contract: OutputContract) -> ClassifierConfig:
        return replace(self, contract=contract)
