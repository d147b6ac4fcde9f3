"""Tests for natural language translation."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from sourcegraph_mcp.core.errors import ConfigurationError
from sourcegraph_mcp.search.translator import (
    NaturalLanguageTranslator,
    SYSTEM_PROMPT,
    build_messages,
    clean_completion,
    fallback_translate,
)


def provider_returning(value):
    provider = MagicMock()
    provider.complete = AsyncMock(return_value=value)
    return provider


# ============================================================================
# Rule-based fallback
# ============================================================================

class TestFallbackTranslate:
    """Tests for the rule-based rewrite."""

    def test_file_search(self):
        """Test plain requests become file searches."""
        assert fallback_translate("find authentication middleware") == "authentication middleware type:file"

    def test_commit_search_with_filters(self):
        """Test author and date phrases become filters."""
        assert fallback_translate("show me commits by jane since 2024-01-01") == (
            "type:commit author:jane after:2024-01-01"
        )

    def test_diff_search(self):
        """Test change-related words select diffs."""
        assert fallback_translate("recent changes to the parser").endswith("type:diff")

    def test_repo_phrase(self):
        """Test 'in repo owner/name' becomes an anchored filter."""
        query = fallback_translate("find http handler in repo golang/go")

        assert query == "http handler type:file repo:^github\\.com/golang/go$"

    def test_existing_query_passed_through(self):
        """Test Sourcegraph syntax is left alone."""
        assert fallback_translate("lang:go type:commit fix") == "lang:go type:commit fix"

    @pytest.mark.parametrize("text", ["", "   ", None, "the a an", "!!!"])
    def test_never_empty(self, text):
        """Test the fallback always returns a typed query."""
        query = fallback_translate(text)

        assert query
        assert "type:" in query


class TestCleanCompletion:
    """Tests for completion clean-up."""

    @pytest.mark.parametrize(
        "completion,expected",
        [
            ("`foo type:file`", "foo type:file"),
            ('"foo type:file"', "foo type:file"),
            ("```\nfoo type:file\n```", "foo type:file"),
            ("```sourcegraph\nfoo\ntype:file\n```", "foo type:file"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_clean(self, completion, expected):
        """Test fences, backticks and quotes are stripped."""
        assert clean_completion(completion) == expected

    def test_messages(self):
        """Test the prompt carries the system message and the request."""
        messages = build_messages("find foo")

        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert '"find foo"' in messages[1]["content"]


# ============================================================================
# NaturalLanguageTranslator
# ============================================================================

class TestNaturalLanguageTranslator:
    """Tests for NaturalLanguageTranslator."""

    @pytest.mark.asyncio
    async def test_uses_provider_completion(self):
        """Test the cleaned LLM completion is returned."""
        provider = provider_returning("`useState lang:typescript type:file`")
        translator = NaturalLanguageTranslator(provider_factory=lambda: provider)

        result = await translator.translate("react state hooks in typescript")

        assert result == "useState lang:typescript type:file"
        provider.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        """Test provider failures produce the rule-based query."""
        provider = MagicMock()
        provider.complete = AsyncMock(side_effect=RuntimeError("rate limited"))
        translator = NaturalLanguageTranslator(provider_factory=lambda: provider)

        result = await translator.translate("find authentication middleware")

        assert result == "authentication middleware type:file"

    @pytest.mark.asyncio
    async def test_missing_api_key_falls_back(self):
        """Test a provider factory that cannot build a provider falls back."""
        def factory():
            raise ConfigurationError("OPENAI_API_KEY is not set")

        translator = NaturalLanguageTranslator(provider_factory=factory)

        assert await translator.translate("commits by bob") == "type:commit author:bob"

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back(self):
        """Test an empty completion falls back."""
        translator = NaturalLanguageTranslator(provider_factory=lambda: provider_returning("  "))

        assert await translator.translate("find parser") == "parser type:file"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        """Test a slow provider is abandoned after the timeout."""
        async def slow(**kwargs):
            await asyncio.sleep(5)
            return "never"

        provider = MagicMock()
        provider.complete = slow
        translator = NaturalLanguageTranslator(provider_factory=lambda: provider, timeout=0.01)

        assert await translator.translate("find parser") == "parser type:file"

    @pytest.mark.asyncio
    async def test_empty_input_skips_provider(self):
        """Test empty input never reaches the provider."""
        factory = MagicMock()
        translator = NaturalLanguageTranslator(provider_factory=factory)

        assert await translator.translate("   ") == "type:file"
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_created_once(self):
        """Test the provider is built on first use and reused afterwards."""
        provider = provider_returning("parser type:file")
        factory = MagicMock(return_value=provider)
        translator = NaturalLanguageTranslator(provider_factory=factory)

        await translator.translate("find parser")
        await translator.translate("find lexer")

        factory.assert_called_once()
        assert provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_close_releases_provider(self):
        """Test close shuts the cached provider and a later call builds a new one."""
        provider = provider_returning("parser type:file")
        provider.close = AsyncMock()
        factory = MagicMock(return_value=provider)
        translator = NaturalLanguageTranslator(provider_factory=factory)

        await translator.translate("find parser")
        await translator.close()
        await translator.close()
        await translator.translate("find parser")

        provider.close.assert_awaited_once()
        assert factory.call_count == 2
