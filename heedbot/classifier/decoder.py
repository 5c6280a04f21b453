"""Decoders: raw model text → Verdict, one per output contract.

Decoders are strict and pure. They never repair text themselves; they
only say whether the resolver is allowed to ask the model for a cleaned-up
reply (``max_repairs``) and what that repair request looks like.
"""

from __future__ import annotations

import json
import math
import re
from abc import ABC, abstractmethod

from heedbot.classifier.models import OutputContract, Priority, Verdict
from heedbot.classifier.prompt_builder import REPAIR_PROMPT

# First ```json ... ``` block; the language tag is matched case-insensitively
_JSON_FENCE = re.compile(r"```json[ \t]*\r?\n?(.*?)```", re.IGNORECASE | re.DOTALL)

_PRIORITY_CODES = {p.value: p for p in Priority}
_ANSWERS = {"y": True, "n": False}


class DecodeError(ValueError):
    """Raw model text does not satisfy the output contract."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class OutputDecoder(ABC):
    """Contract-specific decoder used by the resolver loop."""

    contract: OutputContract

    @abstractmethod
    def decode(self, raw: str) -> Verdict:
        """Return a Verdict or raise DecodeError."""

    def max_repairs(self, configured: int) -> int:
        """Repair calls allowed for this contract (0 = all-or-nothing)."""
        return 0

    def repair_messages(self, raw: str) -> list[dict[str, str]]:
        raise NotImplementedError(f"{type(self).__name__} does not support repair")


class BareTokenDecoder(OutputDecoder):
    """Accepts exactly ``y`` or ``n`` — case-sensitive, no whitespace."""

    contract = OutputContract.BARE_TOKEN

    def decode(self, raw: str) -> Verdict:
        if raw not in _ANSWERS:
            raise DecodeError(f"expected bare 'y' or 'n', got {len(raw)} chars", raw)
        if _ANSWERS[raw]:
            return Verdict(should_notify=True, confidence=100, priority=Priority.MEDIUM, reason="")
        return Verdict(should_notify=False, confidence=100, priority=Priority.LOW, reason="")

    def max_repairs(self, configured: int) -> int:
        return configured

    def repair_messages(self, raw: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": REPAIR_PROMPT},
            {"role": "user", "content": raw},
        ]


class FencedJsonDecoder(OutputDecoder):
    """Parses the first ```json fenced object. No fence, no verdict."""

    contract = OutputContract.FENCED_JSON

    def decode(self, raw: str) -> Verdict:
        match = _JSON_FENCE.search(raw)
        if not match:
            raise DecodeError("no ```json fence in reply", raw)

        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise DecodeError(f"fenced block is not valid JSON: {e}", raw) from e

        if not isinstance(data, dict):
            raise DecodeError(f"fenced JSON is a {type(data).__name__}, not an object", raw)

        answer = data.get("shouldReceive")
        if not isinstance(answer, str) or answer not in _ANSWERS:
            raise DecodeError(f"shouldReceive must be 'y' or 'n', got {answer!r}", raw)

        priority = data.get("priority")
        if not isinstance(priority, str) or priority not in _PRIORITY_CODES:
            raise DecodeError(f"priority must be one of H/M/L, got {priority!r}", raw)

        reason = data.get("reason")
        if not isinstance(reason, str):
            raise DecodeError(f"reason must be a string, got {type(reason).__name__}", raw)

        return Verdict(
            should_notify=_ANSWERS[answer],
            confidence=self._confidence(data, raw),
            priority=_PRIORITY_CODES[priority],
            reason=reason,
        )

    @staticmethod
    def _confidence(data: dict, raw: str) -> int:
        """Required and numeric; rounded and clamped to 0..100."""
        if "confidence" not in data:
            raise DecodeError("confidence is missing", raw)
        value = data["confidence"]
        # bool is an int subclass; "true" is not a confidence
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeError(f"confidence must be a number, got {value!r}", raw)
        if isinstance(value, float) and not math.isfinite(value):
            raise DecodeError(f"confidence must be finite, got {value!r}", raw)
        return min(100, max(0, round(value)))


_DECODERS: dict[OutputContract, OutputDecoder] = {
    OutputContract.BARE_TOKEN: BareTokenDecoder(),
    OutputContract.FENCED_JSON: FencedJsonDecoder(),
}


def decoder_for(contract: OutputContract) -> OutputDecoder:
    return _DECODERS[contract]
