"""Core abstractions and shared types for sourcegraph-mcp."""

from sourcegraph_mcp.core.errors import (
    ConfigurationError,
    NoActiveSessionsError,
    RoutingError,
    SessionNotFoundError,
    SourcegraphMCPError,
    ToolNotFoundError,
    TransportClosedError,
    TransportError,
    TranslationError,
    UpstreamAPIError,
    UpstreamTimeoutError,
)
from sourcegraph_mcp.core.types import (
    RoutingMode,
    SearchType,
    SessionState,
)

__all__ = [
    "RoutingMode",
    "SearchType",
    "SessionState",
    "ConfigurationError",
    "NoActiveSessionsError",
    "RoutingError",
    "SessionNotFoundError",
    "SourcegraphMCPError",
    "ToolNotFoundError",
    "TransportClosedError",
    "TransportError",
    "TranslationError",
    "UpstreamAPIError",
    "UpstreamTimeoutError",
]
