"""VerdictResolver — drives the generation calls and decodes the verdict.

Flow for one conversation:
1. Classification call with the configured model and decoding parameters
2. Decode the reply with the decoder for the conversation's contract
3. Bare-token contract only: on a rejected reply, ask the repair model to
   strip everything but the answer, then re-check (bounded)
4. Any failure → DEFAULT_VERDICT, reported to the metrics sink

Nothing raised by the provider or the decoder crosses resolve().
"""

from __future__ import annotations

import uuid
from typing import Any, TYPE_CHECKING

from loguru import logger

from heedbot.classifier.config import ClassifierConfig
from heedbot.classifier.decoder import DecodeError, decoder_for
from heedbot.classifier.models import (
    Conversation,
    FailureKind,
    Resolution,
    Verdict,
)
from heedbot.classifier.prompt_builder import PROMPT_VERSION
from heedbot.observatory.module_metrics import ModuleMetrics, NullModuleMetrics
from heedbot.providers.base import TransportError

if TYPE_CHECKING:
    from heedbot.providers.base import LLMProvider


class VerdictResolver:
    """Turns a Conversation into a Verdict. Holds no per-request state."""

    def __init__(
        self,
        provider: LLMProvider,
        config: ClassifierConfig | None = None,
        metrics: ModuleMetrics | None = None,
    ):
        self._provider = provider
        self._config = config or ClassifierConfig()
        self._metrics = metrics or NullModuleMetrics()

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    # ── Public API ─────────────────────────────────────────────────────

    async def resolve(self, conversation: Conversation) -> Verdict:
        """Resolve a conversation to a Verdict. Never raises for pipeline failures."""
        resolution = await self.resolve_outcome(conversation)
        return resolution.verdict

    async def resolve_outcome(
        self,
        conversation: Conversation,
        request_id: str | None = None,
        models_used: list[str] | None = None,
    ) -> Resolution:
        """Like resolve(), but also reports whether the verdict is a fallback.

        ``models_used``, when given, is appended to as each endpoint call
        starts, so a caller that abandons the coroutine still knows what ran.
        """
        rid = request_id or uuid.uuid4().hex[:12]
        if models_used is None:
            models_used = []

        self._metrics.record(
            "conversation",
            request_id=rid,
            contract=conversation.contract.value,
            prompt_version=PROMPT_VERSION,
            model=self._config.classification_model,
            user=conversation.user,
        )

        with self._metrics.span("resolved", request_id=rid) as span_data:
            try:
                resolution = await self._run(conversation, rid, models_used)
            except TransportError as e:
                resolution = self.failure(rid, FailureKind.TRANSPORT, str(e), models_used)
            except DecodeError as e:
                resolution = self.failure(rid, FailureKind.DECODE, str(e), models_used)
            except Exception as e:
                logger.exception(f"Resolver: unexpected error ({rid})")
                resolution = self.failure(
                    rid, FailureKind.INTERNAL, f"{type(e).__name__}: {e}", models_used,
                )

            span_data["should_notify"] = resolution.verdict.should_notify
            span_data["confidence"] = resolution.verdict.confidence
            span_data["priority"] = resolution.verdict.priority.name
            span_data["repair_calls"] = resolution.repair_calls
            span_data["failure"] = resolution.failure.value if resolution.failure else None

        return resolution

    # ── Internal ───────────────────────────────────────────────────────

    async def _run(
        self,
        conversation: Conversation,
        rid: str,
        models_used: list[str],
    ) -> Resolution:
        """Classification call + decode/repair loop. Raises on failure."""
        cfg = self._config
        decoder = decoder_for(conversation.contract)
        allowed_repairs = decoder.max_repairs(cfg.max_repairs)

        raw = await self._generate(
            rid,
            call="classify",
            messages=conversation.to_messages(),
            model=cfg.classification_model,
            max_tokens=cfg.max_tokens,
            models_used=models_used,
        )

        repairs = 0
        while True:
            try:
                verdict = decoder.decode(raw)
            except DecodeError as e:
                self._metrics.record(
                    "decode_failed",
                    request_id=rid,
                    contract=conversation.contract.value,
                    attempt=repairs,
                    error=str(e),
                    raw=raw,
                )
                logger.debug(f"Resolver: reply rejected ({rid}, attempt {repairs}): {e}")
                if repairs >= allowed_repairs:
                    raise
                repairs += 1
                raw = await self._generate(
                    rid,
                    call="repair",
                    messages=decoder.repair_messages(raw),
                    model=cfg.repair_model,
                    max_tokens=cfg.repair_max_tokens,
                    models_used=models_used,
                )
                continue

            return Resolution(
                verdict=verdict,
                repair_calls=repairs,
                models_used=tuple(models_used),
            )

    async def _generate(
        self,
        rid: str,
        call: str,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        models_used: list[str],
    ) -> str:
        """One endpoint call. Returns the raw reply text or raises TransportError."""
        models_used.append(model)
        try:
            response = await self._provider.chat(
                messages=messages,
                model=model,
                max_tokens=max_tokens,
                temperature=self._config.temperature,
            )
        except TransportError:
            raise
        except Exception as e:
            # Providers outside this package may raise their own errors
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if getattr(response, "finish_reason", None) == "error":
            raise TransportError(f"provider reported error on {model}: {response.content}")
        content = getattr(response, "content", None)
        if not isinstance(content, str):
            raise TransportError(f"reply from {model} has no text content")

        self._metrics.record(
            "reply",
            request_id=rid,
            call=call,
            model=model,
            raw=content,
        )
        return content

    def failure(
        self,
        rid: str,
        kind: FailureKind,
        detail: str,
        models_used: list[str],
    ) -> Resolution:
        """Log and record a terminal failure; returns the DEFAULT_VERDICT resolution."""
        # Every call after the first is a repair call
        repair_calls = max(0, len(models_used) - 1)
        logger.warning(f"Resolver: {kind.value} failure ({rid}), not notifying: {detail}")
        self._metrics.record(
            "failed",
            request_id=rid,
            kind=kind.value,
            detail=detail,
            repair_calls=repair_calls,
        )
        return Resolution.failure_of(
            kind,
            detail,
            repair_calls=repair_calls,
            models_used=tuple(models_used),
        )
