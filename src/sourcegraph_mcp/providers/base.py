"""Chat-completion providers used to translate natural language into queries."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from sourcegraph_mcp.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]

RETRY_MAX_ATTEMPTS = 3
RETRY_MULTIPLIER = 1
RETRY_MIN_WAIT = 1
RETRY_MAX_WAIT = 8
MAX_CONCURRENT_COMPLETIONS = 5


@dataclass
class ProviderConfig:
    """Connection and sampling settings for one provider.

    Translation wants short, deterministic answers, hence the low
    ``max_tokens`` and zero ``temperature`` defaults.
    """
    provider: str
    model: str
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.0
    max_tokens: int = 100
    timeout: float = 15.0
    extra: dict = field(default_factory=dict)

    @property
    def key_variable(self) -> str:
        return f"{self.provider.upper()}_API_KEY"


class BaseLLMProvider(ABC):
    """A chat model that answers a list of role/content messages with text."""

    def __init__(self, config: ProviderConfig):
        if not config.api_key:
            raise ConfigurationError(f"{config.key_variable} is not set")
        self.config = config
        self._semaphore = asyncio.Semaphore(MAX_CONCURRENT_COMPLETIONS)

    @property
    def name(self) -> str:
        return f"{self.config.provider}:{self.config.model}"

    @abstractmethod
    async def _complete_impl(self, messages: Messages, max_tokens: int, temperature: float) -> str:
        """Send ``messages`` to the provider and return the reply text."""
        ...

    async def close(self) -> None:
        """Release the underlying API client."""
        pass

    @retry(
        stop=stop_after_attempt(RETRY_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=RETRY_MULTIPLIER,
            min=RETRY_MIN_WAIT,
            max=RETRY_MAX_WAIT,
        ),
        retry=retry_if_not_exception_type(ConfigurationError),
        reraise=True,
    )
    async def complete(
        self,
        messages: Messages,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the model's reply to ``messages``.

        Transient failures are retried with exponential backoff. Callers bound
        the total time themselves (the translator wraps this in ``wait_for``).
        """
        async with self._semaphore:
            logger.debug(f"Completion request to {self.name} ({len(messages)} messages)")
            return await self._complete_impl(
                messages=messages,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=self.config.temperature if temperature is None else temperature,
            )
