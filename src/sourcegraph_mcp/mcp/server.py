"""MCP Server implementation for Sourcegraph.

This module provides an MCP (Model Context Protocol) server that exposes
Sourcegraph search, code intelligence and security lookups as tools.

Usage:
    # STDIO transport
    sourcegraph-mcp serve --transport stdio

    # HTTP/SSE transport
    sourcegraph-mcp serve --transport http --port 3002

Claude Desktop / Claude Code integration:
    claude mcp add --transport stdio sourcegraph \\
      --env SOURCEGRAPH_URL=https://sourcegraph.com \\
      --env SOURCEGRAPH_TOKEN=... \\
      -- sourcegraph-mcp serve --transport stdio
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Callable

from pydantic import ValidationError

from sourcegraph_mcp import __version__
from sourcegraph_mcp.config import Settings, get_settings
from sourcegraph_mcp.core.errors import ToolNotFoundError
from sourcegraph_mcp.mcp import resources
from sourcegraph_mcp.mcp.base import Tool, ToolResult
from sourcegraph_mcp.mcp.intelligence_tools import (
    create_definition_tool,
    create_document_symbols_tool,
    create_file_blame_tool,
    create_file_content_tool,
    create_hover_tool,
    create_implementations_tool,
    create_references_tool,
)
from sourcegraph_mcp.mcp.security_tools import (
    create_cve_lookup_tool,
    create_exploit_search_tool,
    create_package_vulnerability_tool,
    create_vendor_advisory_tool,
)
from sourcegraph_mcp.mcp.tools import (
    create_debug_tool,
    create_deep_research_tool,
    create_echo_tool,
    create_natural_search_tool,
    create_nl_search_help_tool,
    create_search_code_tool,
    create_search_commits_tool,
    create_search_diffs_tool,
    create_search_github_repos_tool,
    create_test_connection_tool,
    create_test_nl_search_tool,
)
from sourcegraph_mcp.search.client import SourcegraphClient
from sourcegraph_mcp.search.translator import NaturalLanguageTranslator

logger = logging.getLogger(__name__)

SERVER_NAME = "sourcegraph-mcp-server"
PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RESOURCE_NOT_FOUND = -32002

SUPPORTED_METHODS = [
    "initialize",
    "ping",
    "tools/list",
    "tools/call",
    "tools/invoke",
    "resources/list",
    "resources/templates/list",
    "resources/read",
    "prompts/list",
    "prompts/get",
    "shutdown",
]


def _result(request_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


class MCPServer:
    """Model Context Protocol server for Sourcegraph.

    One instance serves every session: the STDIO loop and each SSE session
    hand their JSON-RPC messages to ``handle_request``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: Callable[[], SourcegraphClient] | None = None,
        translator: NaturalLanguageTranslator | None = None,
    ):
        """Initialize the MCP server.

        Args:
            settings: Application settings. Defaults to ``get_settings()``.
            client_factory: Creates a Sourcegraph client per tool call.
                Raises ConfigurationError when credentials are missing.
            translator: Natural-language translator for natural-search tools.
        """
        self.settings = settings or get_settings()
        self.client_factory = client_factory or self._create_client
        self.translator = translator or NaturalLanguageTranslator(
            provider_factory=self._create_llm_provider,
            timeout=self.settings.ai.llm_timeout,
        )
        self.tools: dict[str, Tool] = {}
        self._running = False

        self._register_tools()

    def _register_tools(self) -> None:
        count = self.settings.search_result_count
        factory = self.client_factory

        for tool in (
            create_echo_tool(),
            create_search_code_tool(factory, count),
            create_search_commits_tool(factory, count),
            create_search_diffs_tool(factory, count),
            create_search_github_repos_tool(factory, count),
            create_natural_search_tool(factory, self.translator, count),
            create_test_nl_search_tool(self.translator, count),
            create_nl_search_help_tool(),
            create_test_connection_tool(factory),
            create_debug_tool(self.describe),
            create_deep_research_tool(factory),
            create_definition_tool(factory),
            create_references_tool(factory),
            create_implementations_tool(factory),
            create_hover_tool(factory),
            create_document_symbols_tool(factory),
            create_file_content_tool(factory),
            create_file_blame_tool(factory),
            create_cve_lookup_tool(factory),
            create_package_vulnerability_tool(factory),
            create_exploit_search_tool(factory, count),
            create_vendor_advisory_tool(factory, count),
        ):
            self.tools[tool.name] = tool

        logger.info(f"Registered {len(self.tools)} tools: {list(self.tools.keys())}")

    def _create_client(self) -> SourcegraphClient:
        return SourcegraphClient.from_settings(self.settings.sourcegraph)

    def _create_llm_provider(self):
        from sourcegraph_mcp.providers import get_llm_provider
        return get_llm_provider(settings=self.settings)

    async def aclose(self) -> None:
        await self.translator.close()

    @property
    def tool_names(self) -> list[str]:
        return list(self.tools.keys())

    def describe(self) -> dict[str, Any]:
        return {
            "tools": self.tool_names,
            "resources": [r["uri"] for r in resources.list_resources()]
            + [t["uriTemplate"] for t in resources.list_resource_templates()],
            "prompts": [p["name"] for p in resources.list_prompts()],
            "methods": SUPPORTED_METHODS,
        }

    async def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Invoke a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name.
            pydantic.ValidationError: If the arguments do not match the tool's schema.
        """
        tool = self.tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return await tool.invoke(arguments)

    async def handle_request(self, request: Any) -> dict[str, Any] | None:
        """Handle a JSON-RPC request.

        Args:
            request: Decoded JSON-RPC message.

        Returns:
            JSON-RPC response dict, or None for notifications.
        """
        if not isinstance(request, dict):
            return _error(None, INVALID_REQUEST, "Invalid Request")

        method = request.get("method", "")
        params = request.get("params") or {}
        request_id = request.get("id")

        if not isinstance(method, str) or not isinstance(params, dict):
            return _error(request_id, INVALID_REQUEST, "Invalid Request")

        if request_id is None and method.startswith("notifications/"):
            logger.debug(f"Notification: {method}")
            return None

        try:
            if method == "initialize":
                return self._handle_initialize(request_id, params)

            elif method == "ping":
                return _result(request_id, {})

            elif method == "tools/list":
                return self._handle_list_tools(request_id)

            elif method == "tools/call":
                return await self._handle_call_tool(request_id, params.get("name"), params.get("arguments"))

            elif method == "tools/invoke":
                return await self._handle_call_tool(request_id, params.get("name"), params.get("parameters"))

            elif method == "resources/list":
                return _result(request_id, {"resources": resources.list_resources()})

            elif method == "resources/templates/list":
                return _result(request_id, {"resourceTemplates": resources.list_resource_templates()})

            elif method == "resources/read":
                return _result(request_id, resources.read_resource(params.get("uri", "")))

            elif method == "prompts/list":
                return _result(request_id, {"prompts": resources.list_prompts()})

            elif method == "prompts/get":
                return _result(request_id, resources.get_prompt(params.get("name", "")))

            elif method == "shutdown":
                self._running = False
                return _result(request_id, None)

            else:
                return _error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        except (resources.ResourceNotFoundError, resources.PromptNotFoundError) as e:
            return _error(request_id, RESOURCE_NOT_FOUND, str(e))

        except Exception as e:
            logger.error(f"Error handling request: {e}", exc_info=True)
            return _error(request_id, INTERNAL_ERROR, str(e))

    def _handle_initialize(
        self,
        request_id: Any,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        client_info = params.get("clientInfo") or {}
        logger.info(f"Initialize from client: {client_info.get('name', 'unknown')}")
        return _result(
            request_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "serverInfo": {
                    "name": SERVER_NAME,
                    "version": __version__,
                },
                "capabilities": {
                    "tools": {},
                    "resources": {},
                    "prompts": {},
                },
            },
        )

    def _handle_list_tools(self, request_id: Any) -> dict[str, Any]:
        tools_list = [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
            }
            for tool in self.tools.values()
        ]
        return _result(request_id, {"tools": tools_list})

    async def _handle_call_tool(
        self,
        request_id: Any,
        tool_name: str | None,
        arguments: dict[str, Any] | None,
    ) -> dict[str, Any]:
        try:
            result = await self.invoke(tool_name, arguments)
        except ToolNotFoundError as e:
            return _error(request_id, INVALID_PARAMS, str(e))
        except ValidationError as e:
            return _error(request_id, INVALID_PARAMS, f"Invalid params for {tool_name}: {e}")
        except Exception as e:
            logger.error(f"Error calling tool {tool_name}: {e}", exc_info=True)
            result = ToolResult.failure(f"Error calling tool {tool_name}: {e}")

        return _result(request_id, result.to_content())

    async def run_stdio(self) -> None:
        """Run the server using stdio transport.

        Reads line-delimited JSON-RPC requests from stdin and writes responses
        to stdout. Nothing else may be written to stdout.
        """
        self._running = True
        logger.info("Starting MCP server on stdio")

        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(
            lambda: protocol, sys.stdin
        )

        try:
            while self._running:
                line = await reader.readline()
                if not line:
                    break

                response = await self.handle_line(line)
                if response is not None:
                    self._write(response)
        finally:
            await self.aclose()

        logger.info("MCP server stopped")

    async def handle_line(self, line: bytes) -> dict[str, Any] | None:
        """Decode one line of STDIO input and handle it.

        Blank lines are skipped. Undecodable bytes and invalid JSON are
        answered with a parse error.
        """
        try:
            line_str = line.decode("utf-8").strip()
            if not line_str:
                return None
            request = json.loads(line_str)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Invalid JSON: {e}")
            return _error(None, PARSE_ERROR, f"Parse error: {e}")

        return await self.handle_request(request)

    @staticmethod
    def _write(message: dict[str, Any]) -> None:
        sys.stdout.write(json.dumps(message) + "\n")
        sys.stdout.flush()
