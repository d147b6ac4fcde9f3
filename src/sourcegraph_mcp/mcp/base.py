"""Tool and result types shared by every MCP tool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict

from sourcegraph_mcp.core.errors import ConfigurationError, UpstreamAPIError
from sourcegraph_mcp.search.client import SourcegraphClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], SourcegraphClient]


class ToolInput(BaseModel):
    """Base class for tool parameter models."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NoInput(ToolInput):
    pass


@dataclass
class ToolResult:
    """Standard result format for MCP tools."""
    text: str
    is_error: bool = False

    @classmethod
    def failure(cls, text: str) -> "ToolResult":
        return cls(text=text, is_error=True)

    def to_content(self) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": self.text}],
            "isError": self.is_error,
        }


@dataclass(frozen=True)
class Tool:
    """A named tool bound to its parameter model and handler.

    ``invoke`` validates raw arguments against ``input_model`` before the
    handler runs, so handlers only ever receive a typed model instance.
    """
    name: str
    description: str
    input_model: type[ToolInput]
    handler: Callable[[Any], Awaitable[ToolResult]]

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    async def invoke(self, arguments: dict[str, Any] | None) -> ToolResult:
        params = self.input_model.model_validate(arguments or {})
        return await self.handler(params)


def error_result(tool_name: str, action: str, error: Exception) -> ToolResult:
    """Convert an exception raised inside a tool into an error result.

    Configuration and upstream API errors are reported verbatim; anything else
    is logged and prefixed with the action that failed.
    """
    if isinstance(error, (ConfigurationError, UpstreamAPIError)):
        logger.warning(f"[Tool:{tool_name}] {error}")
        return ToolResult.failure(str(error))
    logger.error(f"[Tool:{tool_name}] Error: {error}", exc_info=True)
    return ToolResult.failure(f"Error {action}: {error}")
