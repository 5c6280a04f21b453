"""LLM provider abstraction module."""

from heedbot.providers.base import LLMProvider, LLMResponse, TransportError
from heedbot.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "TransportError", "LiteLLMProvider"]
