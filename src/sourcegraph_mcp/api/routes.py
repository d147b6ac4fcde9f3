"""REST search API.

Endpoints:
    GET  /                  Status line
    POST /search/code       {"query", "directQuery"?}
    POST /search/commits    {"query", "directQuery"?}
    POST /search/diffs      {"query", "directQuery"?}
    POST /api/search        {"query", "type"}; runs the matching MCP tool
    GET  /api/tools         Output of the debug tool
"""

from __future__ import annotations

import contextlib
import json
import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from sourcegraph_mcp.core.errors import ConfigurationError, UpstreamAPIError
from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.mcp.server import MCPServer
from sourcegraph_mcp.search.query_builder import build_search_query

logger = logging.getLogger(__name__)

SEARCH_KINDS = {
    "code": SearchType.FILE,
    "commits": SearchType.COMMIT,
    "diffs": SearchType.DIFF,
}


async def _read_json(request: Request) -> dict | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def create_api_app(server: MCPServer | None = None) -> Starlette:
    server = server or MCPServer()

    async def index(request: Request) -> Response:
        return PlainTextResponse("Sourcegraph Multi-Search Server is running")

    async def search(request: Request) -> Response:
        search_type = SEARCH_KINDS.get(request.path_params["kind"])
        if search_type is None:
            return JSONResponse({"error": "Unknown search kind"}, status_code=404)
        body = await _read_json(request)
        if not body or not str(body.get("query") or "").strip():
            return JSONResponse({"error": "Missing required field: query"}, status_code=400)

        original_query = str(body["query"]).strip()
        if body.get("directQuery"):
            query = original_query
        else:
            query = await server.translator.translate(original_query)
        final_query = build_search_query(query, search_type, count="all")

        try:
            async with server.client_factory() as client:
                results = await client.search(final_query, search_type)
        except ConfigurationError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        except UpstreamAPIError as e:
            logger.error(f"Search failed: {e}")
            return JSONResponse({"error": str(e), "finalQuery": final_query}, status_code=502)

        return JSONResponse({
            "originalQuery": original_query,
            "finalQuery": final_query,
            "results": results,
        })

    async def api_search(request: Request) -> Response:
        body = await _read_json(request)
        if not body or not body.get("query"):
            return JSONResponse({"error": "Missing required field: query"}, status_code=400)

        search_type = str(body.get("type") or "file").lower()
        if search_type == "natural":
            result = await server.invoke("natural-search", {"query": body["query"]})
        elif SearchType.from_value(search_type) is not None:
            result = await server.invoke("search-code", {"query": body["query"], "type": search_type})
        else:
            return JSONResponse({"error": f"Unsupported search type: {search_type}"}, status_code=400)

        return JSONResponse(result.to_content(), status_code=500 if result.is_error else 200)

    async def api_tools(request: Request) -> Response:
        result = await server.invoke("debug")
        return JSONResponse(json.loads(result.text))

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        try:
            yield
        finally:
            await server.aclose()

    return Starlette(
        routes=[
            Route("/", index, methods=["GET"]),
            Route("/search/{kind:str}", search, methods=["POST"]),
            Route("/api/search", api_search, methods=["POST"]),
            Route("/api/tools", api_tools, methods=["GET"]),
        ],
        middleware=[Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "POST"])],
        lifespan=lifespan,
    )
