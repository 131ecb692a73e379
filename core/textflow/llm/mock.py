"""Deterministic provider for tests and offline runs."""

import asyncio
from dataclasses import dataclass
from typing import Any

from textflow.llm.provider import (
    LLMProvider,
    LLMResponse,
    ProviderError,
    compose_system_instruction,
)


@dataclass
class MockCall:
    """One recorded generate() invocation."""

    model_id: str
    prompt: str
    instruction: str | None
    global_context: str | None
    system: str


class MockLLMProvider(LLMProvider):
    """
    Echoes a deterministic response derived from the prompt.

    Args:
        responses: Map of prompt substring -> canned response. The first key
            found in the prompt wins.
        failures: Map of prompt substring -> error message. A match raises
            ProviderError with that message.
        delays: Map of prompt substring -> seconds to sleep before answering.
        default_template: Format string for unmatched prompts; receives
            ``model`` and ``prompt``.
    """

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        failures: dict[str, str] | None = None,
        delays: dict[str, float] | None = None,
        default_template: str = "[{model}] {prompt}",
    ):
        self.responses = responses or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.default_template = default_template
        self.calls: list[MockCall] = []

    @staticmethod
    def _lookup(table: dict[str, Any], prompt: str) -> Any | None:
        for key, value in table.items():
            if key in prompt:
                return value
        return None

    async def generate(
        self,
        model_id: str,
        prompt: str,
        instruction: str | None = None,
        global_context: str | None = None,
    ) -> LLMResponse:
        self.calls.append(
            MockCall(
                model_id=model_id,
                prompt=prompt,
                instruction=instruction,
                global_context=global_context,
                system=compose_system_instruction(instruction, global_context),
            )
        )

        delay = self._lookup(self.delays, prompt)
        if delay:
            await asyncio.sleep(delay)

        failure = self._lookup(self.failures, prompt)
        if failure is not None:
            raise ProviderError(failure, model=model_id)

        content = self._lookup(self.responses, prompt)
        if content is None:
            content = self.default_template.format(model=model_id, prompt=prompt)
        return LLMResponse(content=content, model=model_id, stop_reason="stop")
