"""Configuration module for Sourcegraph MCP."""

from sourcegraph_mcp.config.settings import (
    AISettings,
    ServerSettings,
    Settings,
    SourcegraphSettings,
    get_settings,
)

__all__ = [
    "AISettings",
    "ServerSettings",
    "Settings",
    "SourcegraphSettings",
    "get_settings",
]
