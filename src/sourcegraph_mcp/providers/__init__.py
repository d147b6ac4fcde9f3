"""LLM providers for natural-language query translation (OpenAI, Anthropic)."""

from sourcegraph_mcp.providers.base import BaseLLMProvider, ProviderConfig
from sourcegraph_mcp.providers.factory import get_llm_provider

__all__ = ["BaseLLMProvider", "ProviderConfig", "get_llm_provider"]
