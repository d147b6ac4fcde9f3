"""MCP tool definitions for Sourcegraph search.

Each ``create_*_tool`` factory returns a :class:`Tool` whose handler takes the
validated parameter model. Tools never raise: failures come back as a
``ToolResult`` with ``is_error`` set.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from pydantic import Field

from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.formatting import format_research_report, format_search_results
from sourcegraph_mcp.mcp.base import (
    ClientFactory,
    NoInput,
    Tool,
    ToolInput,
    ToolResult,
    error_result,
)
from sourcegraph_mcp.search.query_builder import (
    DEFAULT_RESULT_COUNT,
    build_research_query,
    build_search_query,
    detect_search_type,
    parse_query,
    parse_repo_list,
)
from sourcegraph_mcp.search.translator import NaturalLanguageTranslator

logger = logging.getLogger(__name__)


# =============================================================================
# Parameter Models
# =============================================================================

class EchoInput(ToolInput):
    message: str = Field(description="The message to echo")


class SearchCodeInput(ToolInput):
    query: str = Field(description="Sourcegraph search query")
    search_type: SearchType = Field(
        default=SearchType.FILE,
        alias="type",
        description="Result type: file, commit or diff",
    )


class SearchCommitsInput(ToolInput):
    author: str | None = Field(default=None, description="Commit author name or email")
    message: str | None = Field(default=None, description="Text that appears in the commit message")
    after: str | None = Field(default=None, description="Only commits after this date (YYYY-MM-DD)")


class SearchDiffsInput(ToolInput):
    query: str | None = Field(default=None, description="Text to look for in the changed lines")
    author: str | None = Field(default=None, description="Commit author name or email")
    after: str | None = Field(default=None, description="Only diffs after this date (YYYY-MM-DD)")


class SearchGithubReposInput(ToolInput):
    query: str = Field(description="Sourcegraph search query")
    repos: str = Field(description="Comma-separated list of owner/name repositories")
    search_type: SearchType = Field(default=SearchType.FILE, alias="type")


class NaturalSearchInput(ToolInput):
    query: str = Field(description="Search request in plain English")
    search_type: SearchType | None = Field(
        default=None,
        alias="type",
        description="Force a result type instead of inferring it",
    )


class TranslateInput(ToolInput):
    query: str = Field(description="Search request in plain English")


class DeepResearchInput(ToolInput):
    query: str = Field(description="What to research, e.g. 'JWT token validation'")
    language: str | None = Field(default=None, description="Restrict to a language, e.g. 'go'")
    repo: str | None = Field(default=None, description="Organisation, owner/name, or repo pattern")
    limit: int = Field(default=DEFAULT_RESULT_COUNT, ge=1, le=500, description="Maximum results per search")


# =============================================================================
# Tool Factory Functions
# =============================================================================

def create_echo_tool() -> Tool:
    async def echo(params: EchoInput) -> ToolResult:
        return ToolResult(text=f"Hello {params.message}")

    return Tool(
        name="echo",
        description=(
            "Simple echo tool for testing that returns your message with a 'Hello' prefix. "
            "Use it to check that the server is responsive."
        ),
        input_model=EchoInput,
        handler=echo,
    )


def create_debug_tool(describe: Callable[[], dict[str, Any]]) -> Tool:
    """Create the debug tool.

    Args:
        describe: Returns the server's registered tools, resources, prompts and methods.
    """
    async def debug(params: NoInput) -> ToolResult:
        return ToolResult(text=json.dumps(describe(), indent=2))

    return Tool(
        name="debug",
        description="List every tool, resource, prompt and method this server exposes.",
        input_model=NoInput,
        handler=debug,
    )


async def _search(
    client_factory: ClientFactory,
    query: str,
    search_type: SearchType,
) -> str:
    async with client_factory() as client:
        results = await client.search(query, search_type)
    return format_search_results(results, query, search_type)


def create_search_code_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    """Create the search-code tool.

    Args:
        client_factory: Factory returning a configured SourcegraphClient.
        result_count: ``count:`` appended when the query has none.

    Returns:
        Tool definition for MCP registration.
    """
    async def search_code(params: SearchCodeInput) -> ToolResult:
        """Search code with Sourcegraph query syntax.

        Examples:
            query="useState", type="file"  ->  "useState type:file count:20"
            query="lang:go http.Handler"   ->  "lang:go http.Handler type:file count:20"
        """
        query = build_search_query(params.query, params.search_type, count=result_count)
        logger.info(f"[Tool:search-code] {query}")

        try:
            text = await _search(client_factory, query, detect_search_type(query, params.search_type))
            return ToolResult(text=text)
        except Exception as e:
            return error_result("search-code", "searching Sourcegraph", e)

    return Tool(
        name="search-code",
        description=(
            "Search code across repositories using Sourcegraph query syntax. "
            "Supports filters such as repo:, file:, lang: and type:."
        ),
        input_model=SearchCodeInput,
        handler=search_code,
    )


def create_search_commits_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    async def search_commits(params: SearchCommitsInput) -> ToolResult:
        query = build_search_query(
            "",
            SearchType.COMMIT,
            author=params.author,
            message=params.message,
            after=params.after,
            count=result_count,
        )
        logger.info(f"[Tool:search-commits] {query}")

        try:
            return ToolResult(text=await _search(client_factory, query, SearchType.COMMIT))
        except Exception as e:
            return error_result("search-commits", "searching commits", e)

    return Tool(
        name="search-commits",
        description="Search commit history by author, message text and date.",
        input_model=SearchCommitsInput,
        handler=search_commits,
    )


def create_search_diffs_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    async def search_diffs(params: SearchDiffsInput) -> ToolResult:
        query = build_search_query(
            params.query or "",
            SearchType.DIFF,
            author=params.author,
            after=params.after,
            count=result_count,
        )
        logger.info(f"[Tool:search-diffs] {query}")

        try:
            return ToolResult(text=await _search(client_factory, query, SearchType.DIFF))
        except Exception as e:
            return error_result("search-diffs", "searching diffs", e)

    return Tool(
        name="search-diffs",
        description="Search code changes (diffs), optionally filtered by author and date.",
        input_model=SearchDiffsInput,
        handler=search_diffs,
    )


def create_search_github_repos_tool(client_factory: ClientFactory, result_count: int = DEFAULT_RESULT_COUNT) -> Tool:
    async def search_github_repos(params: SearchGithubReposInput) -> ToolResult:
        repos = parse_repo_list(params.repos)
        if not repos:
            return ToolResult.failure("Error: No valid repositories provided.")

        query = build_search_query(
            params.query,
            params.search_type,
            repos=repos,
            count=result_count,
        )
        logger.info(f"[Tool:search-github-repos] {query}")

        try:
            text = await _search(client_factory, query, detect_search_type(query, params.search_type))
            return ToolResult(text=text)
        except Exception as e:
            return error_result("search-github-repos", "searching GitHub repositories", e)

    return Tool(
        name="search-github-repos",
        description=(
            "Search specific GitHub repositories. "
            "repos is a comma-separated list such as 'facebook/react,vercel/next.js'."
        ),
        input_model=SearchGithubReposInput,
        handler=search_github_repos,
    )


def create_natural_search_tool(
    client_factory: ClientFactory,
    translator: NaturalLanguageTranslator,
    result_count: int = DEFAULT_RESULT_COUNT,
) -> Tool:
    async def natural_search(params: NaturalSearchInput) -> ToolResult:
        """Translate a plain-English request and run it.

        The translated query is shown above the results so the caller can
        refine it and use search-code directly next time.
        """
        translated = await translator.translate(params.query)
        search_type = params.search_type or detect_search_type(translated)
        query = build_search_query(translated, search_type, count=result_count)
        logger.info(f"[Tool:natural-search] '{params.query}' -> {query}")

        try:
            text = await _search(client_factory, query, detect_search_type(query, search_type))
            return ToolResult(text=f"Translated query: `{query}`\n\n{text}")
        except Exception as e:
            return error_result("natural-search", "running natural language search", e)

    return Tool(
        name="natural-search",
        description="Search using plain English; the request is translated to Sourcegraph syntax first.",
        input_model=NaturalSearchInput,
        handler=natural_search,
    )


def create_test_nl_search_tool(
    translator: NaturalLanguageTranslator,
    result_count: int = DEFAULT_RESULT_COUNT,
) -> Tool:
    async def test_nl_search(params: TranslateInput) -> ToolResult:
        translated = await translator.translate(params.query)
        analysis = parse_query(translated)
        search_type = analysis.search_type or SearchType.FILE
        final_query = build_search_query(translated, search_type, count=result_count)

        lines = [
            "## Natural Language Search Test\n\n",
            f"**Input:** {params.query}\n\n",
            f"**Translated Query:** `{translated}`\n\n",
            f"**Final Query:** `{final_query}`\n\n",
            "### Query Analysis\n",
            f"- Type: {search_type.value}\n",
            f"- Terms: {analysis.terms or '(none)'}\n",
            f"- Author: {analysis.author or '(any)'}\n",
            f"- After: {analysis.after or '(any)'}\n",
            f"- Repositories: {', '.join(analysis.repos) or '(all)'}\n",
        ]
        return ToolResult(text="".join(lines))

    return Tool(
        name="test-nl-search",
        description="Show how a plain-English request would be translated, without running the search.",
        input_model=TranslateInput,
        handler=test_nl_search,
    )


NL_SEARCH_HELP = """## Natural Language Search

Describe what you are looking for in plain English and the server turns it
into a Sourcegraph query. An LLM (LLM_PROVIDER=openai or anthropic) is used
when an API key is configured; otherwise a rule-based rewrite is applied.

### Recognised phrases
- "commits" selects type:commit, "diffs" or "changes" selects type:diff
- "by <name>" or "author <name>" adds author:<name>
- "after YYYY-MM-DD" or "since YYYY-MM-DD" adds after:<date>
- "in repo owner/name" restricts the search to that repository

### Examples
- "find authentication middleware" -> `authentication middleware type:file`
- "commits by jane since 2024-01-01" -> `type:commit author:jane after:2024-01-01`
- "changes to the parser in repo golang/go" -> `to parser type:diff repo:^github\\.com/golang/go$`

Use test-nl-search to preview a translation and natural-search to run it.
"""


def create_nl_search_help_tool() -> Tool:
    async def nl_search_help(params: NoInput) -> ToolResult:
        return ToolResult(text=NL_SEARCH_HELP)

    return Tool(
        name="nl-search-help",
        description="Explain how natural language search requests are translated.",
        input_model=NoInput,
        handler=nl_search_help,
    )


def create_test_connection_tool(client_factory: ClientFactory) -> Tool:
    async def test_connection(params: NoInput) -> ToolResult:
        try:
            async with client_factory() as client:
                username = await client.current_user()
                url = client.url
        except Exception as e:
            return error_result("test-connection", "connecting to Sourcegraph", e)

        return ToolResult(
            text=(
                f"✅ Successfully connected to Sourcegraph API at {url}\n"
                f"Authenticated as: {username or 'anonymous'}"
            )
        )

    return Tool(
        name="test-connection",
        description="Check that SOURCEGRAPH_URL and SOURCEGRAPH_TOKEN are valid.",
        input_model=NoInput,
        handler=test_connection,
    )


def create_deep_research_tool(client_factory: ClientFactory) -> Tool:
    async def deep_code_researcher(params: DeepResearchInput) -> ToolResult:
        """Research a topic across code and commit history.

        Runs a file search and a commit search for the same topic and
        combines them into one report with pattern and contributor insights.
        """
        file_query = build_research_query(
            params.query, SearchType.FILE, params.language, params.repo, params.limit
        )
        commit_query = build_research_query(
            params.query, SearchType.COMMIT, None, params.repo, params.limit
        )
        logger.info(f"[Tool:deep-code-researcher] {file_query} | {commit_query}")

        try:
            async with client_factory() as client:
                file_results = await client.search(file_query, SearchType.FILE)
                commit_results = await client.search(commit_query, SearchType.COMMIT)
        except Exception as e:
            result = error_result("deep-code-researcher", "in deep code research", e)
            result.text += (
                "\n\nDebugging Information:\n"
                f"- Query: {params.query}\n"
                f"- Repository: {params.repo or 'Not specified'}\n"
                f"- Language: {params.language or 'Not specified'}\n"
                f"- Limit: {params.limit}\n"
            )
            return result

        return ToolResult(
            text=format_research_report(
                params.query,
                file_results,
                commit_results,
                language=params.language,
                repo=params.repo,
            )
        )

    return Tool(
        name="deep-code-researcher",
        description=(
            "Research how something is implemented: searches code and commits together "
            "and reports key files, directories, contributors and a timeline."
        ),
        input_model=DeepResearchInput,
        handler=deep_code_researcher,
    )
