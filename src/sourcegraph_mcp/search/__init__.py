"""Sourcegraph query construction, translation, and execution."""

from sourcegraph_mcp.search.client import SourcegraphClient
from sourcegraph_mcp.search.query_builder import (
    DEFAULT_RESULT_COUNT,
    QueryAnalysis,
    build_repo_filter,
    build_search_query,
    detect_search_type,
    parse_query,
)
from sourcegraph_mcp.search.translator import (
    NaturalLanguageTranslator,
    fallback_translate,
)

__all__ = [
    "DEFAULT_RESULT_COUNT",
    "NaturalLanguageTranslator",
    "QueryAnalysis",
    "SourcegraphClient",
    "build_repo_filter",
    "build_search_query",
    "detect_search_type",
    "fallback_translate",
    "parse_query",
]
