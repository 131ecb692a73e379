"""Tests for the generation providers and system instruction composition."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from textflow.config import RuntimeConfig
from textflow.llm.litellm import LiteLLMProvider
from textflow.llm.mock import MockLLMProvider
from textflow.llm.provider import ProviderError, compose_system_instruction


class TestComposeSystemInstruction:
    def test_context_and_instruction(self):
        assert compose_system_instruction("Be brief.", "Voice: calm") == (
            "### GLOBAL CONTEXT / COMPANY VOICE:\nVoice: calm\n\n\n"
            "### ROLE INSTRUCTION:\nBe brief."
        )

    def test_default_role(self):
        assert compose_system_instruction() == (
            "### ROLE INSTRUCTION:\nYou are a helpful AI assistant."
        )


class TestMockProvider:
    @pytest.mark.asyncio
    async def test_first_matching_response_wins(self):
        llm = MockLLMProvider(responses={"alpha": "A", "beta": "B"})
        response = await llm.generate("m", "beta then alpha")
        assert response.content == "A"

    @pytest.mark.asyncio
    async def test_failure(self):
        llm = MockLLMProvider(failures={"bad": "nope"})
        with pytest.raises(ProviderError, match="nope") as exc_info:
            await llm.generate("m", "a bad prompt")
        assert exc_info.value.model == "m"
        assert len(llm.calls) == 1


def fake_completion(content="Generated", prompt_tokens=10, completion_tokens=20):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")
        ],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
        model="gemini/gemini-2.5-flash",
    )


class TestLiteLLMProvider:
    @pytest.mark.asyncio
    async def test_generate_builds_messages(self):
        provider = LiteLLMProvider(
            RuntimeConfig(model="gemini/gemini-2.5-flash", max_tokens=512, api_key="k", timeout=30)
        )

        with patch(
            "textflow.llm.litellm.litellm.acompletion",
            new=AsyncMock(return_value=fake_completion()),
        ) as acompletion:
            response = await provider.generate(
                model_id="gemini/gemini-2.5-flash",
                prompt="Topic X",
                instruction="Write.",
                global_context="Voice: calm",
            )

        kwargs = acompletion.call_args.kwargs
        assert kwargs["model"] == "gemini/gemini-2.5-flash"
        assert kwargs["messages"][0]["role"] == "system"
        assert "Voice: calm" in kwargs["messages"][0]["content"]
        assert kwargs["messages"][1] == {"role": "user", "content": "Topic X"}
        assert kwargs["max_tokens"] == 512
        assert kwargs["api_key"] == "k"
        assert kwargs["timeout"] == 30
        assert "api_base" not in kwargs

        assert response.content == "Generated"
        assert response.input_tokens == 10
        assert response.output_tokens == 20
        assert response.stop_reason == "stop"

    @pytest.mark.asyncio
    async def test_errors_become_provider_errors(self):
        provider = LiteLLMProvider(RuntimeConfig(model="gemini/gemini-2.5-flash"))

        with patch(
            "textflow.llm.litellm.litellm.acompletion",
            new=AsyncMock(side_effect=RuntimeError("rate limited")),
        ):
            with pytest.raises(ProviderError, match="rate limited"):
                await provider.generate(model_id="gemini/gemini-2.5-flash", prompt="x")
