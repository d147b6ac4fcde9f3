"""Anthropic Claude provider.

Enable with ``LLM_PROVIDER=anthropic`` and ``ANTHROPIC_API_KEY``; the model is
``ANTHROPIC_MODEL`` (default ``claude-3-5-haiku-latest``).
"""

import logging

from anthropic import AsyncAnthropic

from sourcegraph_mcp.core.errors import TranslationError
from sourcegraph_mcp.providers.base import BaseLLMProvider, Messages, ProviderConfig

logger = logging.getLogger(__name__)


def split_system_prompt(messages: Messages) -> tuple[str, Messages]:
    """Separate system messages, which Anthropic takes as a top-level field."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    conversation = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m["role"] != "system"
    ]
    return system, conversation


class AnthropicLLMProvider(BaseLLMProvider):
    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        # retries are handled by BaseLLMProvider.complete
        self._client = AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=0,
        )
        logger.info(f"Query translation via Anthropic model {config.model}")

    async def close(self) -> None:
        await self._client.close()

    async def _complete_impl(self, messages: Messages, max_tokens: int, temperature: float) -> str:
        system, conversation = split_system_prompt(messages)
        request = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system:
            request["system"] = system

        try:
            response = await self._client.messages.create(**request)
        except Exception as e:
            logger.error(f"Anthropic completion failed: {e}")
            raise TranslationError(f"Anthropic completion failed: {e}", cause=e)

        text = "".join(
            getattr(block, "text", "") for block in response.content or []
        )
        return text.strip()
