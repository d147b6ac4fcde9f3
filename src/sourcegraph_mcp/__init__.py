"""Sourcegraph MCP - Sourcegraph code search exposed as MCP tools."""

__version__ = "1.0.0"

from sourcegraph_mcp.config import Settings, get_settings
from sourcegraph_mcp.mcp import MCPServer
from sourcegraph_mcp.transport import SessionRegistry, create_app

__all__ = [
    "create_app",
    "get_settings",
    "MCPServer",
    "SessionRegistry",
    "Settings",
]
