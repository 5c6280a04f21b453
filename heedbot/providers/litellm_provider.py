"""LiteLLM provider for OpenAI-compatible generation endpoints.

One call per chat(): no model rotation, no silent retries. Any failure,
including a reply envelope without choices[0].message.content, surfaces as
TransportError so the resolver can apply its failure policy.
"""

from __future__ import annotations

import asyncio
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from heedbot.providers.base import LLMProvider, LLMResponse, TransportError

DEFAULT_API_BASE = "https://api.gmi-serving.com/v1"

# Models on a custom OpenAI-compatible base are routed through LiteLLM's openai adapter
DEFAULT_PROVIDER_PREFIX = "openai"

# Timeout for a single LLM call — generous but prevents infinite hangs
LLM_CALL_TIMEOUT: float = 45.0


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM's async completion API.

    The bearer token is passed per call instead of through process-wide
    environment variables, so several providers with different keys can
    coexist in one process.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = DEFAULT_API_BASE,
        default_model: str = "deepseek-ai/DeepSeek-R1-Distill-Qwen-7B",
        provider_prefix: str | None = DEFAULT_PROVIDER_PREFIX,
        timeout: float = LLM_CALL_TIMEOUT,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.provider_prefix = provider_prefix
        self._timeout = timeout

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers instead of failing the call
        litellm.drop_params = True

    def _resolve_model(self, model: str) -> str:
        """Apply the provider prefix unless the model already carries it."""
        prefix = self.provider_prefix
        if prefix and not model.startswith(f"{prefix}/"):
            return f"{prefix}/{model}"
        return model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Send one chat completion request. Raises TransportError on failure."""
        requested = model or self.default_model
        kwargs: dict[str, Any] = {
            "model": self._resolve_model(requested),
            "messages": messages,
            "max_tokens": max(1, max_tokens),
            "temperature": temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            # Timeout prevents indefinite blocking on provider issues
            response = await asyncio.wait_for(
                acompletion(**kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"LLM timeout after {self._timeout}s on {requested}")
            raise TransportError(f"timeout after {self._timeout}s on {requested}") from e
        except Exception as e:
            logger.warning(f"LLM error on {requested}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return self._parse_response(response, requested)

    def _parse_response(self, response: Any, model: str) -> LLMResponse:
        """Parse a LiteLLM response into our standard format."""
        try:
            choice = response.choices[0]
            content = choice.message.content
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise TransportError(f"malformed response envelope from {model}: {e}") from e

        if not isinstance(content, str):
            raise TransportError(f"response from {model} has no message content")

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=content,
            finish_reason=getattr(choice, "finish_reason", None) or "stop",
            usage=usage,
            model=model,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
