"""LLM provider abstraction."""

from textflow.llm.litellm import LiteLLMProvider
from textflow.llm.mock import MockLLMProvider
from textflow.llm.provider import (
    LLMProvider,
    LLMResponse,
    ProviderError,
    compose_system_instruction,
)

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "ProviderError",
    "compose_system_instruction",
    "LiteLLMProvider",
    "MockLLMProvider",
]
