"""Build the configured LLM provider."""

import logging

from sourcegraph_mcp.config import Settings, get_settings
from sourcegraph_mcp.core.errors import ConfigurationError
from sourcegraph_mcp.providers.base import BaseLLMProvider, ProviderConfig

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic")


def get_llm_provider(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    settings: Settings | None = None,
) -> BaseLLMProvider:
    """Create the provider used for query translation.

    Explicit arguments win over settings; settings come from ``LLM_PROVIDER``,
    ``OPENAI_*``/``ANTHROPIC_*`` and ``LLM_*`` environment variables.

    Raises:
        ConfigurationError: Unknown provider, or no API key for it.
    """
    settings = settings or get_settings()
    ai = settings.ai
    name = (provider or ai.llm_provider).lower()

    if name not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unknown LLM provider: {name}. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    if name == "anthropic":
        default_model, configured_key = ai.anthropic_model, ai.anthropic_api_key
    else:
        default_model, configured_key = ai.openai_model, ai.openai_api_key

    config = ProviderConfig(
        provider=name,
        model=model or default_model,
        api_key=api_key or configured_key.get_secret_value() or None,
        temperature=ai.llm_temperature if temperature is None else temperature,
        max_tokens=max_tokens or ai.llm_max_tokens,
        timeout=ai.llm_timeout,
    )

    if name == "anthropic":
        from sourcegraph_mcp.providers.anthropic_provider import AnthropicLLMProvider
        return AnthropicLLMProvider(config)

    from sourcegraph_mcp.providers.openai_provider import OpenAILLMProvider
    return OpenAILLMProvider(config)
