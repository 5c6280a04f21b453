"""Notification classifier — decides whether a chat message is worth a notification.

Given a subscriber's free-text interest description, the message under
judgment, and a window of prior messages, asks a generative model for a
judgment and decodes it into a typed Verdict.

Architecture:
    - prompt_builder.py: ClassificationRequest → Conversation (pure)
    - resolver.py: endpoint calls, decoding, bounded repair, failure policy
    - decoder.py: strict per-contract decoders (bare y/n, fenced JSON)
    - models.py: ChatMessage / ClassificationRequest / Verdict / Resolution
    - NotificationClassifier (this file): the caller-facing facade

Failures never reach the caller as exceptions: they come back as
DEFAULT_VERDICT (should_notify=False). Use classify_outcome() when a
failure must be told apart from a genuine "no".
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING

from loguru import logger

from .config import ClassifierConfig
from .decoder import BareTokenDecoder, DecodeError, FencedJsonDecoder, decoder_for
from .models import (
    DEFAULT_VERDICT,
    ChatMessage,
    ClassificationRequest,
    Conversation,
    FailureKind,
    OutputContract,
    Priority,
    Resolution,
    Verdict,
)
from .prompt_builder import build
from .resolver import VerdictResolver
from heedbot.observatory.module_metrics import ModuleMetrics, NullModuleMetrics

if TYPE_CHECKING:
    from heedbot.providers.base import LLMProvider


class NotificationClassifier:
    """classify(request) → Verdict.

    Stateless between calls; one instance may serve concurrent requests.
    """

    def __init__(
        self,
        provider: LLMProvider,
        config: ClassifierConfig | None = None,
        metrics: ModuleMetrics | None = None,
    ) -> None:
        self.config = config or ClassifierConfig()
        self._metrics = metrics or NullModuleMetrics()
        self.resolver = VerdictResolver(provider, self.config, self._metrics)

    async def classify(
        self,
        request: ClassificationRequest,
        timeout: float | None = None,
    ) -> Verdict:
        """Classify one message. Never raises for pipeline failures."""
        resolution = await self.classify_outcome(request, timeout=timeout)
        return resolution.verdict

    async def classify_outcome(
        self,
        request: ClassificationRequest,
        timeout: float | None = None,
    ) -> Resolution:
        """Classify one message and report whether the pipeline failed.

        Args:
            request: The message, its context and the interest description.
            timeout: Overall deadline in seconds for the whole resolve
                sequence, repair calls included. Expiry counts as a
                transport failure.
        """
        conversation = build(request, self.config.contract)
        rid = uuid.uuid4().hex[:12]

        if timeout is None:
            return await self.resolver.resolve_outcome(conversation, request_id=rid)

        models_used: list[str] = []
        try:
            return await asyncio.wait_for(
                self.resolver.resolve_outcome(conversation, request_id=rid, models_used=models_used),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Classifier: timeout after {timeout}s ({rid})")
            self._metrics.record("timeout", request_id=rid, timeout_s=timeout, calls=len(models_used))
            return self.resolver.failure(
                rid, FailureKind.TRANSPORT, f"timeout after {timeout}s", models_used,
            )


__all__ = [
    "BareTokenDecoder",
    "ChatMessage",
    "ClassificationRequest",
    "ClassifierConfig",
    "Conversation",
    "DEFAULT_VERDICT",
    "DecodeError",
    "FailureKind",
    "FencedJsonDecoder",
    "NotificationClassifier",
    "OutputContract",
    "Priority",
    "Resolution",
    "Verdict",
    "VerdictResolver",
    "build",
    "decoder_for",
]
