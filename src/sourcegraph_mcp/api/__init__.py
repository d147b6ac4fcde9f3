"""REST search API served alongside the MCP transports."""

from sourcegraph_mcp.api.routes import create_api_app

__all__ = ["create_api_app"]
