"""Natural-language to Sourcegraph query translation.

The translator asks the configured LLM provider for a query. Whenever that
fails it falls back to a deterministic rule-based rewrite, so ``translate``
always returns a usable, non-empty query.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable

from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.providers.base import BaseLLMProvider
from sourcegraph_mcp.search.query_builder import build_repo_filter, has_type_clause

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that turns natural language into "
    "Sourcegraph search queries. Provide only the query."
)

USER_PROMPT_TEMPLATE = (
    "Convert the following natural language into a Sourcegraph code search query:\n\n"
    '"{text}"'
)

LEADING_PHRASES = re.compile(
    r"^(?:please\s+)?(?:can you\s+|could you\s+)?"
    r"(?:show me|find me|search for|look for|looking for|search|find|show|list|get|give me|where is|where are)\b\s*",
    re.IGNORECASE,
)
FILLER_WORDS = {
    "a", "an", "the", "all", "any", "some", "please", "me", "my", "i", "want", "need",
    "that", "which", "instances", "occurrences", "examples",
}
AUTHOR_PATTERN = re.compile(r"\b(?:by|from|author)\s+([\w.@-]+)", re.IGNORECASE)
AFTER_PATTERN = re.compile(r"\b(?:after|since)\s+(\d{4}-\d{2}-\d{2})", re.IGNORECASE)
REPO_PATTERN = re.compile(r"\bin\s+(?:the\s+)?repo(?:sitory)?\s+([\w./-]+)", re.IGNORECASE)
COMMIT_KEYWORDS = re.compile(r"\bcommits?\b", re.IGNORECASE)
DIFF_KEYWORDS = re.compile(r"\b(?:diffs?|changes|pull requests?|prs?)\b", re.IGNORECASE)


def build_messages(text: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)},
    ]


def clean_completion(completion: str | None) -> str:
    """Strip code fences, backticks, and wrapping quotes from a completion."""
    if not completion:
        return ""
    text = completion.strip()
    fenced = re.search(r"```(?:\w+)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    text = text.strip().strip("`").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return " ".join(text.split())


def fallback_translate(text: str) -> str:
    """Rule-based rewrite of a natural-language query.

    Never raises and always returns a query containing a ``type:`` clause.

    Examples:
        >>> fallback_translate("find authentication middleware")
        'authentication middleware type:file'
        >>> fallback_translate("show me commits by jane since 2024-01-01")
        'type:commit author:jane after:2024-01-01'
    """
    remaining = " ".join((text or "").split())

    if has_type_clause(remaining):
        return remaining

    author = None
    match = AUTHOR_PATTERN.search(remaining)
    if match:
        author = match.group(1)
        remaining = AUTHOR_PATTERN.sub(" ", remaining, count=1)

    after = None
    match = AFTER_PATTERN.search(remaining)
    if match:
        after = match.group(1)
        remaining = AFTER_PATTERN.sub(" ", remaining, count=1)

    repos = REPO_PATTERN.findall(remaining)
    remaining = REPO_PATTERN.sub(" ", remaining)

    search_type = SearchType.FILE
    if COMMIT_KEYWORDS.search(remaining):
        search_type = SearchType.COMMIT
        remaining = COMMIT_KEYWORDS.sub(" ", remaining)
    elif DIFF_KEYWORDS.search(remaining):
        search_type = SearchType.DIFF
        remaining = DIFF_KEYWORDS.sub(" ", remaining)

    remaining = LEADING_PHRASES.sub("", remaining.strip())
    terms = [word for word in remaining.split() if word.lower() not in FILLER_WORDS]

    parts = terms + [f"type:{search_type.value}"]
    if author:
        parts.append(f"author:{author}")
    if after:
        parts.append(f"after:{after}")
    parts.extend(build_repo_filter(repo) if "/" in repo else f"repo:{repo}" for repo in repos)

    return " ".join(parts)


class NaturalLanguageTranslator:
    """Turns free text into a Sourcegraph query using an LLM, with a rule-based fallback."""

    def __init__(
        self,
        provider_factory: Callable[[], BaseLLMProvider] | None = None,
        timeout: float = 15.0,
    ):
        """Initialize the translator.

        Args:
            provider_factory: Creates the LLM provider on first use. Defaults
                to ``get_llm_provider`` with the current settings. A factory
                that raises is retried on the next call.
            timeout: Upper bound in seconds for one LLM completion.
        """
        self._provider_factory = provider_factory or _default_provider_factory
        self._provider: BaseLLMProvider | None = None
        self.timeout = timeout

    def _get_provider(self) -> BaseLLMProvider:
        if self._provider is None:
            self._provider = self._provider_factory()
        return self._provider

    async def close(self) -> None:
        """Close the cached provider, if one was created."""
        provider, self._provider = self._provider, None
        if provider is not None:
            await provider.close()

    async def translate(self, text: str) -> str:
        text = (text or "").strip()
        if not text:
            return fallback_translate(text)

        try:
            provider = self._get_provider()
            completion = await asyncio.wait_for(
                provider.complete(messages=build_messages(text)),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"LLM translation failed, using rule-based fallback: {e}")
            return fallback_translate(text)

        query = clean_completion(completion)
        if not query:
            logger.warning("LLM returned an empty query, using rule-based fallback")
            return fallback_translate(text)

        logger.info(f"Translated '{text}' -> '{query}'")
        return query


def _default_provider_factory() -> BaseLLMProvider:
    from sourcegraph_mcp.providers import get_llm_provider
    return get_llm_provider()
