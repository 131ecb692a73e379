"""LLM Provider abstraction for pluggable generation backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

DEFAULT_ROLE_INSTRUCTION = "You are a helpful AI assistant."


@dataclass
class LLMResponse:
    """Response from a generation call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    raw_response: Any = None


class ProviderError(Exception):
    """A generation call failed. The message is shown to the user as-is."""

    def __init__(self, message: str, model: str | None = None):
        super().__init__(message)
        self.model = model


def compose_system_instruction(
    instruction: str | None = None,
    global_context: str | None = None,
) -> str:
    """
    Combine the workspace global context with a node's role instruction.

    The global context section is emitted only when present; the role section
    falls back to a generic assistant directive.
    """
    parts = []
    if global_context:
        parts.append(f"### GLOBAL CONTEXT / COMPANY VOICE:\n{global_context}\n\n")
    parts.append(f"\n### ROLE INSTRUCTION:\n{instruction or DEFAULT_ROLE_INSTRUCTION}")
    return "".join(parts).strip()


class LLMProvider(ABC):
    """
    Abstract generation capability - plug in any LLM backend.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Timeouts (the engine imposes none)
    - Raising ProviderError with a human-readable message on failure
    """

    @abstractmethod
    async def generate(
        self,
        model_id: str,
        prompt: str,
        instruction: str | None = None,
        global_context: str | None = None,
    ) -> LLMResponse:
        """
        Generate text for a single prompt.

        Args:
            model_id: Which generation profile/model to use
            prompt: The user-turn payload assembled by the node processor
            instruction: Optional role/system text configured on the node
            global_context: Optional workspace-wide context

        Returns:
            LLMResponse with the generated text

        Raises:
            ProviderError: If the backend call fails
        """
        pass
