"""Record/replay for classifier endpoint calls.

RecordReplayProvider wraps a real provider and keeps one reply per
(model, conversation) in a ReplyCache directory. Four modes:
- record:         always call the endpoint, store the reply
- replay:         only stored replies; a miss is a CacheMissError
- replay_or_live: stored reply if present, otherwise call and store
- passthrough:    no cache at all

The key covers the model and every message, so classification and repair
calls for the same thread get separate entries. Temperature and max_tokens
are not part of the key. The prompt builder is byte-reproducible, which
makes a re-run of the same thread replay exactly.

Replies the endpoint failed to produce are never stored.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from heedbot.observatory.module_metrics import ModuleMetrics, NullModuleMetrics
from heedbot.providers.base import LLMProvider, LLMResponse, TransportError


class CacheMode(str, Enum):
    RECORD = "record"
    REPLAY = "replay"
    REPLAY_OR_LIVE = "replay_or_live"
    PASSTHROUGH = "passthrough"


CACHE_MODES: tuple[str, ...] = tuple(m.value for m in CacheMode)

_TARGET_HEADER = "Message to Classify:\n"


class CacheMissError(TransportError):
    """Replay mode found no stored reply for a call."""


def describe_call(messages: list[dict[str, Any]]) -> tuple[str, str]:
    """Return (call kind, short label) for a cache entry.

    Classification calls are labelled with the message under judgment;
    repair calls with the start of the malformed reply they carry.
    """
    user = ""
    for msg in reversed(messages):
        if msg.get("role") == "user":
            user = str(msg.get("content", ""))
            break
    if _TARGET_HEADER in user:
        return "classify", user.split(_TARGET_HEADER, 1)[1].split("\n", 1)[0]
    return "repair", user[:80]


@dataclass
class CacheStats:
    """Hit/miss/record counts for one provider instance."""
    hits: int = 0
    misses: int = 0
    records: int = 0
    errors: int = 0

    def summary(self) -> str:
        return (
            f"Cache: {self.hits} hit(s), {self.misses} miss(es), "
            f"{self.records} recorded, {self.errors} error(s)"
        )


class ReplyCache:
    """Directory of JSON files, one stored reply per key."""

    def __init__(self, cache_dir: Path | str) -> None:
        self.dir = Path(cache_dir)
        self.dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def key(model: str, messages: list[dict[str, Any]]) -> str:
        """SHA-256 over the model and each message's role and content."""
        parts = [f"model:{model}"]
        parts.extend(f"{m.get('role', '')}:{m.get('content', '')}" for m in messages)
        return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self.dir / f"{key}.json"

    def load(self, key: str) -> LLMResponse | None:
        """Stored reply for ``key``, or None. Raises ValueError/OSError on a corrupt entry."""
        path = self._path(key)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict) or not isinstance(data.get("reply"), str):
            raise ValueError("entry has no reply text")
        return LLMResponse(
            content=data["reply"],
            finish_reason=data.get("finish_reason") or "stop",
            usage=data.get("usage") or {},
            model=data.get("model", ""),
        )

    def save(
        self,
        key: str,
        response: LLMResponse,
        model: str,
        messages: list[dict[str, Any]],
    ) -> None:
        call, label = describe_call(messages)
        entry = {
            "model": model,
            "call": call,
            "label": label,
            "reply": response.content,
            "finish_reason": response.finish_reason,
            "usage": response.usage,
        }
        self._path(key).write_text(
            json.dumps(entry, ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )


class RecordReplayProvider(LLMProvider):
    """Provider that records and replays endpoint replies.

    Usage:
        real = LiteLLMProvider(api_key=...)
        provider = RecordReplayProvider(real, Path(".heedbot-cache"), mode="replay_or_live")
        classifier = NotificationClassifier(provider)
    """

    def __init__(
        self,
        real_provider: LLMProvider,
        cache_dir: Path | str,
        mode: CacheMode | str = CacheMode.REPLAY_OR_LIVE,
        metrics: ModuleMetrics | None = None,
    ):
        # Keys stay on the real provider
        super().__init__(api_key=None, api_base=None)
        try:
            self.mode = CacheMode(mode)
        except ValueError:
            raise ValueError(f"Unknown cache mode {mode!r}; expected one of {CACHE_MODES}") from None
        self._real = real_provider
        self.cache = ReplyCache(cache_dir)
        self.stats = CacheStats()
        self._metrics = metrics or NullModuleMetrics()
        logger.info(f"RecordReplayProvider: mode={self.mode.value}, cache={self.cache.dir}")

    def get_default_model(self) -> str:
        return self._real.get_default_model()

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        resolved = model or self.get_default_model()
        if self.mode is CacheMode.PASSTHROUGH:
            return await self._call_real(messages, resolved, max_tokens, temperature)

        key = ReplyCache.key(resolved, messages)
        call, label = describe_call(messages)

        if self.mode is not CacheMode.RECORD:
            cached = self._lookup(key)
            if cached is not None:
                self.stats.hits += 1
                self._metrics.record("cache_hit", key=key[:12], call=call, model=resolved, label=label)
                return cached

            self.stats.misses += 1
            self._metrics.record("cache_miss", key=key[:12], call=call, model=resolved, label=label)
            if self.mode is CacheMode.REPLAY:
                raise CacheMissError(f"No recorded {call} reply from {resolved} for {label!r}")

        response = await self._call_real(messages, resolved, max_tokens, temperature)
        if response.finish_reason == "error" or not isinstance(response.content, str):
            logger.debug(f"Cache: not storing failed {call} reply ({key[:12]})")
            return response

        try:
            self.cache.save(key, response, resolved, messages)
        except OSError as e:
            logger.error(f"Cache: failed to store entry {key[:12]}: {e}")
            self.stats.errors += 1
        else:
            self.stats.records += 1
            self._metrics.record("cache_record", key=key[:12], call=call, model=resolved, label=label)
        return response

    def _lookup(self, key: str) -> LLMResponse | None:
        try:
            return self.cache.load(key)
        except (OSError, ValueError) as e:
            # Corrupt entries count as misses
            logger.error(f"Cache: unreadable entry {key[:12]}: {e}")
            self.stats.errors += 1
            return None

    async def _call_real(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        return await self._real.chat(
            messages=messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
        )
