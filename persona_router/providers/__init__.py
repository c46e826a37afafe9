"""LLM provider abstraction module."""

from persona_router.providers.base import LLMProvider, LLMResponse
from persona_router.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
