"""Transports for the MCP server: SSE session registry and HTTP app."""

from sourcegraph_mcp.transport.http import create_app, create_registry, serve
from sourcegraph_mcp.transport.sessions import Session, SessionRegistry, generate_session_id
from sourcegraph_mcp.transport.sse import SseTransport

__all__ = [
    "create_app",
    "create_registry",
    "generate_session_id",
    "serve",
    "Session",
    "SessionRegistry",
    "SseTransport",
]
