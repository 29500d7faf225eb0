"""Unit tests for LLM provider adapters: OpenAI, Anthropic."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from knowledge_rag.config.settings import Settings
from knowledge_rag.utils.errors import LLMError

_REQUEST = httpx.Request("POST", "https://api.example.com")


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "anthropic_api_key": "test-anthropic",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    def test_provider_label(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"
        assert (
            OpenAILLMProvider(_settings(openai_base_url="http://localhost:8080/v1")).get_provider_name()
            == "openai-compatible"
        )

    def test_is_available_without_key(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_without_key_raises_before_building_client(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI") as client_cls:
            provider = OpenAILLMProvider(_settings(openai_api_key=""))
            with pytest.raises(LLMError, match="OPENAI_API_KEY"):
                await provider.complete("prompt")

        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_built_once(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="ok"))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch(
            "knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client
        ) as client_cls:
            provider = OpenAILLMProvider(_settings())
            await provider.complete("one")
            await provider.complete("two")

        client_cls.assert_called_once()

    @pytest.mark.asyncio
    async def test_complete_success(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content="LLM response text"))]
        mock_response.usage = MagicMock(total_tokens=100)
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            result = await provider.complete("user prompt", system_prompt="system prompt")

        assert result == "LLM response text"
        _, kwargs = mock_client.chat.completions.create.call_args
        assert kwargs["messages"] == [
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "user prompt"},
        ]
        assert kwargs["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_complete_error(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError("server error", request=_REQUEST, body=None)
        )

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=openai.APITimeoutError(request=_REQUEST))

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError, match="timed out"):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_empty_content(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_response = MagicMock()
        mock_response.choices = [MagicMock(message=MagicMock(content=None))]
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(LLMError, match="empty response"):
                await provider.complete("prompt")


# ======================================================================
# Anthropic LLM Provider
# ======================================================================


class TestAnthropicLLMProvider:
    def test_get_provider_name(self) -> None:
        from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        assert AnthropicLLMProvider(_settings()).get_provider_name() == "anthropic"

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self) -> None:
        from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = MagicMock()
        mock_response.content = [
            MagicMock(type="text", text="first"),
            MagicMock(type="tool_use", text="ignored"),
            MagicMock(type="text", text="second"),
        ]
        mock_response.usage = MagicMock(input_tokens=10, output_tokens=5)
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("knowledge_rag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(_settings())
            result = await provider.complete("prompt")

        assert result == "first\nsecond"
        _, kwargs = mock_client.messages.create.call_args
        assert "system" not in kwargs

    @pytest.mark.asyncio
    async def test_system_prompt_passed(self) -> None:
        from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_response = MagicMock()
        mock_response.content = [MagicMock(type="text", text="ok")]
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch("knowledge_rag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(_settings())
            await provider.complete("prompt", system_prompt="be brief", max_tokens=50)

        _, kwargs = mock_client.messages.create.call_args
        assert kwargs["system"] == "be brief"
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_api_error(self) -> None:
        from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            side_effect=anthropic.APIError("overloaded", request=_REQUEST, body=None)
        )

        with patch("knowledge_rag.providers.llm.anthropic_provider.anthropic.AsyncAnthropic", return_value=mock_client):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(LLMError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.provider_name == "anthropic"
