"""Markdown formatters for Sourcegraph API responses."""

from sourcegraph_mcp.formatting.common import escape_markdown
from sourcegraph_mcp.formatting.intelligence import (
    format_definitions,
    format_document_symbols,
    format_hover,
    format_implementations,
    format_references,
)
from sourcegraph_mcp.formatting.repository import format_file_blame, format_file_content
from sourcegraph_mcp.formatting.research import format_research_report
from sourcegraph_mcp.formatting.search import format_search_results
from sourcegraph_mcp.formatting.security import (
    format_cve_results,
    format_package_vulnerabilities,
    format_severity,
)

__all__ = [
    "escape_markdown",
    "format_cve_results",
    "format_definitions",
    "format_document_symbols",
    "format_file_blame",
    "format_file_content",
    "format_hover",
    "format_implementations",
    "format_package_vulnerabilities",
    "format_references",
    "format_research_report",
    "format_search_results",
    "format_severity",
]
