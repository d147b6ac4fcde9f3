"""OpenAI chat-completions provider (default for query translation)."""

import logging

from openai import AsyncOpenAI

from sourcegraph_mcp.core.errors import TranslationError
from sourcegraph_mcp.providers.base import BaseLLMProvider, Messages, ProviderConfig

logger = logging.getLogger(__name__)


class OpenAILLMProvider(BaseLLMProvider):
    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self._client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )
        logger.info(f"Query translation via OpenAI model {config.model}")

    async def close(self) -> None:
        await self._client.close()

    async def _complete_impl(self, messages: Messages, max_tokens: int, temperature: float) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"OpenAI completion failed: {e}")
            raise TranslationError(f"OpenAI completion failed: {e}", cause=e)

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()
