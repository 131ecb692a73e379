"""LiteLLM-backed generation provider.

LiteLLM gives one call signature for Gemini, Anthropic, OpenAI and friends;
model strings follow its "<provider>/<model>" convention
(e.g. "gemini/gemini-2.5-flash").
"""

import logging
from typing import Any

import litellm

from textflow.config import RuntimeConfig
from textflow.llm.provider import (
    LLMProvider,
    LLMResponse,
    ProviderError,
    compose_system_instruction,
)

logger = logging.getLogger(__name__)


class LiteLLMProvider(LLMProvider):
    """
    Generation provider built on litellm.acompletion.

    Example:
        llm = LiteLLMProvider(config=RuntimeConfig(model="gemini/gemini-2.5-flash"))
        response = await llm.generate(
            model_id="gemini/gemini-2.5-flash",
            prompt="The future of electric aviation",
            instruction="You are an expert blog writer.",
        )
    """

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or RuntimeConfig()

    def _request_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        if self.config.timeout:
            kwargs["timeout"] = self.config.timeout
        return kwargs

    async def generate(
        self,
        model_id: str,
        prompt: str,
        instruction: str | None = None,
        global_context: str | None = None,
    ) -> LLMResponse:
        model = model_id or self.config.model
        messages = [
            {"role": "system", "content": compose_system_instruction(instruction, global_context)},
            {"role": "user", "content": prompt},
        ]

        try:
            response = await litellm.acompletion(
                model=model,
                messages=messages,
                **self._request_kwargs(),
            )
        except Exception as e:
            logger.error(f"LiteLLM call failed for {model}: {e}", extra={"model": model})
            raise ProviderError(str(e) or type(e).__name__, model=model) from e

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=choice.finish_reason or "",
            raw_response=response,
        )
