"""HTTP/SSE transport for the MCP server.

Endpoints:
    GET  /           Server name, version and tool list
    GET  /health     Liveness and open session count
    GET  /sse        Opens an SSE session; first event is ``endpoint``
    POST /messages   JSON-RPC message for a session (``?sessionId=``)
"""

from __future__ import annotations

import contextlib
import json
import logging
import sys

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from sourcegraph_mcp import __version__
from sourcegraph_mcp.config import Settings
from sourcegraph_mcp.core.errors import RoutingError
from sourcegraph_mcp.mcp.server import MCPServer
from sourcegraph_mcp.transport.sessions import SessionRegistry
from sourcegraph_mcp.transport.sse import SseTransport

logger = logging.getLogger(__name__)

SERVER_DISPLAY_NAME = "Sourcegraph MCP Server"
MESSAGES_PATH = "/messages"


def create_registry(settings: Settings) -> SessionRegistry:
    keepalive = settings.server.sse_keepalive_interval
    return SessionRegistry(
        transport_factory=lambda session_id: SseTransport(
            session_id,
            endpoint=f"{MESSAGES_PATH}?sessionId={session_id}",
            keepalive_interval=keepalive,
        ),
        routing_mode=settings.server.routing_mode,
        idle_timeout=settings.server.session_idle_timeout,
        sweep_interval=settings.server.session_sweep_interval,
    )


def create_app(
    server: MCPServer | None = None,
    settings: Settings | None = None,
    registry: SessionRegistry | None = None,
) -> Starlette:
    """Build the Starlette application serving the MCP HTTP/SSE transport.

    Args:
        server: MCP server shared by every session.
        settings: Settings used for the registry and the default server.
        registry: Session registry; built from ``settings`` when omitted.

    Returns:
        Starlette app. ``app.state.registry`` and ``app.state.server`` expose
        the injected collaborators.
    """
    server = server or MCPServer(settings=settings)
    settings = settings or server.settings
    registry = registry or create_registry(settings)

    async def index(request: Request) -> Response:
        return JSONResponse({
            "name": SERVER_DISPLAY_NAME,
            "version": __version__,
            "status": "running",
            "tools": server.tool_names,
        })

    async def health(request: Request) -> Response:
        return JSONResponse({
            "status": "ok",
            "transport": "sse",
            "sessions": len(registry),
            "routingMode": registry.routing_mode.value,
        })

    async def sse(request: Request) -> Response:
        requested_id = request.query_params.get("sessionId") or None
        try:
            session = registry.open_session(server, requested_id)
        except Exception as e:
            logger.error(f"Failed to open SSE session: {e}", exc_info=True)
            return PlainTextResponse(f"Server error: {e}", status_code=500)

        session_id = session.session_id
        transport = session.transport

        async def stream():
            try:
                async for frame in transport.events():
                    yield frame
            finally:
                registry.close_session(session_id, session)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    async def messages(request: Request) -> Response:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        session_id = request.query_params.get("sessionId")
        if not session_id and isinstance(payload, dict):
            session_id = payload.get("sessionId")

        try:
            session = await registry.route_message(session_id, payload)
        except RoutingError as e:
            logger.warning(f"Routing failed for session {session_id}: {e}")
            return JSONResponse({"error": str(e)}, status_code=400)
        except Exception as e:
            logger.error(f"Error handling message: {e}", exc_info=True)
            return JSONResponse({"error": f"Internal server error: {e}"}, status_code=500)

        return JSONResponse(
            {"status": "accepted", "sessionId": session.session_id},
            status_code=202,
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await registry.start()
        logger.info(f"MCP HTTP transport ready ({registry.routing_mode.value} routing)")
        try:
            yield
        finally:
            await registry.shutdown()
            await server.aclose()

    app = Starlette(
        routes=[
            Route("/", index, methods=["GET"]),
            Route("/health", health, methods=["GET"]),
            Route("/sse", sse, methods=["GET"]),
            Route(MESSAGES_PATH, messages, methods=["POST"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.server = server
    app.state.registry = registry
    return app


def serve(app: Starlette, host: str, port: int, log_level: str = "info") -> None:
    """Run ``app`` with uvicorn. Exits with status 1 if the port cannot be bound."""
    logger.info(f"Listening on http://{host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    except OSError as e:
        logger.error(f"Failed to bind {host}:{port}: {e}")
        sys.exit(1)
