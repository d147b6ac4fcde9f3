"""Tests for LLM providers used by query translation."""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from sourcegraph_mcp.core.errors import ConfigurationError
from sourcegraph_mcp.providers import ProviderConfig, get_llm_provider
from sourcegraph_mcp.providers.anthropic_provider import AnthropicLLMProvider
from sourcegraph_mcp.providers.openai_provider import OpenAILLMProvider

from conftest import make_settings

MESSAGES = [
    {"role": "system", "content": "Provide only the query."},
    {"role": "user", "content": "find auth code"},
]


class TestProviderFactory:
    """Tests for get_llm_provider."""

    def test_missing_api_key(self):
        """Test a provider without an API key cannot be created."""
        with pytest.raises(ConfigurationError) as exc_info:
            get_llm_provider(settings=make_settings())
        assert "OPENAI_API_KEY is not set" in str(exc_info.value)

    def test_unknown_provider(self):
        """Test unknown provider names are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            get_llm_provider(provider="gemini", api_key="k", settings=make_settings())
        assert "Unknown LLM provider: gemini" in str(exc_info.value)

    def test_openai_defaults(self):
        """Test OpenAI picks up model and token limits from settings."""
        provider = get_llm_provider(api_key="sk-test", settings=make_settings())

        assert isinstance(provider, OpenAILLMProvider)
        assert provider.config.model == "gpt-3.5-turbo"
        assert provider.config.max_tokens == 100
        assert provider.config.temperature == 0.0

    def test_anthropic_selected(self):
        """Test the anthropic provider is built on request."""
        provider = get_llm_provider(provider="anthropic", api_key="sk-ant", settings=make_settings())

        assert isinstance(provider, AnthropicLLMProvider)
        assert provider.config.model == "claude-3-5-haiku-latest"


class TestOpenAIProvider:
    """Tests for OpenAILLMProvider."""

    @pytest.mark.asyncio
    async def test_complete(self):
        """Test the completion text is returned stripped."""
        provider = OpenAILLMProvider(ProviderConfig(provider="openai", model="gpt-3.5-turbo", api_key="sk"))
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  auth type:file \n"))])
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=response)

        result = await provider.complete(MESSAGES)

        assert result == "auth type:file"
        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"] == MESSAGES
        assert kwargs["max_tokens"] == 100

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close shuts the API client."""
        provider = OpenAILLMProvider(ProviderConfig(provider="openai", model="gpt-3.5-turbo", api_key="sk"))
        provider._client = MagicMock()
        provider._client.close = AsyncMock()

        await provider.close()

        provider._client.close.assert_awaited_once()


class TestAnthropicProvider:
    """Tests for AnthropicLLMProvider."""

    @pytest.mark.asyncio
    async def test_system_message_split_out(self):
        """Test the system prompt is passed separately from the messages."""
        provider = AnthropicLLMProvider(
            ProviderConfig(provider="anthropic", model="claude-3-5-haiku-latest", api_key="sk-ant")
        )
        response = SimpleNamespace(content=[SimpleNamespace(text="auth type:file")])
        provider._client = MagicMock()
        provider._client.messages.create = AsyncMock(return_value=response)

        result = await provider.complete(MESSAGES, temperature=0.2)

        assert result == "auth type:file"
        kwargs = provider._client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Provide only the query."
        assert kwargs["messages"] == [{"role": "user", "content": "find auth code"}]
        assert kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close shuts the API client."""
        provider = AnthropicLLMProvider(
            ProviderConfig(provider="anthropic", model="claude-3-5-haiku-latest", api_key="sk-ant")
        )
        provider._client = MagicMock()
        provider._client.close = AsyncMock()

        await provider.close()

        provider._client.close.assert_awaited_once()
