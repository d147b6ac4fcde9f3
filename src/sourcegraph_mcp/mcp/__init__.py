"""Model Context Protocol (MCP) server for Sourcegraph.

Exposes Sourcegraph search as MCP tools over STDIO or HTTP/SSE.

Available Tools:
    - echo, debug: diagnostics
    - search-code, search-commits, search-diffs, search-github-repos: structured search
    - natural-search, test-nl-search, nl-search-help: plain-English search
    - deep-code-researcher: combined code and commit analysis
    - get-definition, find-references, find-implementations,
      get-hover-documentation, get-document-symbols: code intelligence
    - get-file-content, get-file-blame: repository content
    - lookup-cve, lookup-package-vulnerability, search-exploits,
      find-vendor-advisory: security
    - test-connection: credential check
"""

from sourcegraph_mcp.mcp.base import Tool, ToolInput, ToolResult
from sourcegraph_mcp.mcp.server import MCPServer

__all__ = [
    "MCPServer",
    "Tool",
    "ToolInput",
    "ToolResult",
]
