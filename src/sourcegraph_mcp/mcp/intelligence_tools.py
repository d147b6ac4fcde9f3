"""Code-intelligence and repository-content tools."""

from __future__ import annotations

import logging

from pydantic import Field, model_validator

from sourcegraph_mcp.formatting import (
    format_definitions,
    format_document_symbols,
    format_file_blame,
    format_file_content,
    format_hover,
    format_implementations,
    format_references,
)
from sourcegraph_mcp.mcp.base import ClientFactory, Tool, ToolInput, ToolResult, error_result
from sourcegraph_mcp.search import graphql

logger = logging.getLogger(__name__)


class FileInput(ToolInput):
    repository: str = Field(description="Repository name, e.g. 'github.com/owner/repo'")
    path: str = Field(description="File path within the repository")


class PositionInput(FileInput):
    line: int = Field(ge=0, description="Zero-based line number")
    character: int = Field(ge=0, description="Zero-based character offset")

    def variables(self) -> dict:
        return {
            "repository": self.repository,
            "path": self.path,
            "line": self.line,
            "character": self.character,
        }


class PagedPositionInput(PositionInput):
    limit: int = Field(default=50, ge=1, le=1000, description="Maximum results to return")


class FileContentInput(FileInput):
    revision: str | None = Field(default=None, description="Branch, tag or commit (defaults to HEAD)")


class FileBlameInput(FileInput):
    start_line: int = Field(default=0, ge=0, alias="startLine")
    end_line: int = Field(default=100, ge=0, alias="endLine")

    @model_validator(mode="after")
    def check_range(self) -> "FileBlameInput":
        if self.end_line < self.start_line:
            raise ValueError("endLine must not be before startLine")
        return self


def create_definition_tool(client_factory: ClientFactory) -> Tool:
    async def get_definition(params: PositionInput) -> ToolResult:
        logger.info(f"[Tool:get-definition] {params.repository}:{params.path}:{params.line}")
        try:
            async with client_factory() as client:
                lsif = await client.blob_lsif(graphql.DEFINITIONS_QUERY, params.variables())
            return ToolResult(text=format_definitions(lsif))
        except Exception as e:
            return error_result("get-definition", "finding definitions", e)

    return Tool(
        name="get-definition",
        description="Find where the symbol at a position is defined. Requires precise code intelligence.",
        input_model=PositionInput,
        handler=get_definition,
    )


def create_references_tool(client_factory: ClientFactory) -> Tool:
    async def find_references(params: PagedPositionInput) -> ToolResult:
        logger.info(f"[Tool:find-references] {params.repository}:{params.path}:{params.line}")
        try:
            async with client_factory() as client:
                lsif = await client.blob_lsif(
                    graphql.REFERENCES_QUERY,
                    {**params.variables(), "first": params.limit},
                )
            return ToolResult(text=format_references(lsif, params.variables()))
        except Exception as e:
            return error_result("find-references", "finding references", e)

    return Tool(
        name="find-references",
        description="Find all references to the symbol at a position, grouped by repository and file.",
        input_model=PagedPositionInput,
        handler=find_references,
    )


def create_implementations_tool(client_factory: ClientFactory) -> Tool:
    async def find_implementations(params: PagedPositionInput) -> ToolResult:
        logger.info(f"[Tool:find-implementations] {params.repository}:{params.path}:{params.line}")
        try:
            async with client_factory() as client:
                lsif = await client.blob_lsif(
                    graphql.IMPLEMENTATIONS_QUERY,
                    {**params.variables(), "first": params.limit},
                )
            return ToolResult(text=format_implementations(lsif, params.variables()))
        except Exception as e:
            return error_result("find-implementations", "finding implementations", e)

    return Tool(
        name="find-implementations",
        description="Find implementations of the interface or abstract method at a position.",
        input_model=PagedPositionInput,
        handler=find_implementations,
    )


def create_hover_tool(client_factory: ClientFactory) -> Tool:
    async def get_hover_documentation(params: PositionInput) -> ToolResult:
        try:
            async with client_factory() as client:
                lsif = await client.blob_lsif(graphql.HOVER_QUERY, params.variables())
            return ToolResult(text=format_hover(lsif))
        except Exception as e:
            return error_result("get-hover-documentation", "getting hover documentation", e)

    return Tool(
        name="get-hover-documentation",
        description="Get hover documentation and type information for the symbol at a position.",
        input_model=PositionInput,
        handler=get_hover_documentation,
    )


def create_document_symbols_tool(client_factory: ClientFactory) -> Tool:
    async def get_document_symbols(params: FileInput) -> ToolResult:
        try:
            async with client_factory() as client:
                lsif = await client.blob_lsif(
                    graphql.DOCUMENT_SYMBOLS_QUERY,
                    {"repository": params.repository, "path": params.path},
                )
            return ToolResult(text=format_document_symbols(lsif, params.repository, params.path))
        except Exception as e:
            return error_result("get-document-symbols", "getting document symbols", e)

    return Tool(
        name="get-document-symbols",
        description="List the symbols (classes, functions, variables) defined in a file.",
        input_model=FileInput,
        handler=get_document_symbols,
    )


def create_file_content_tool(client_factory: ClientFactory) -> Tool:
    async def get_file_content(params: FileContentInput) -> ToolResult:
        logger.info(f"[Tool:get-file-content] {params.repository}:{params.path}@{params.revision or 'HEAD'}")
        try:
            async with client_factory() as client:
                blob = await client.blob(
                    graphql.FILE_CONTENT_QUERY,
                    {
                        "repository": params.repository,
                        "path": params.path,
                        "revision": params.revision or "HEAD",
                    },
                )
            return ToolResult(
                text=format_file_content(blob, params.repository, params.path, params.revision)
            )
        except Exception as e:
            return error_result("get-file-content", "getting file content", e)

    return Tool(
        name="get-file-content",
        description="Fetch the raw content of a file at a revision.",
        input_model=FileContentInput,
        handler=get_file_content,
    )


def create_file_blame_tool(client_factory: ClientFactory) -> Tool:
    async def get_file_blame(params: FileBlameInput) -> ToolResult:
        try:
            async with client_factory() as client:
                blob = await client.blob(
                    graphql.FILE_BLAME_QUERY,
                    {
                        "repository": params.repository,
                        "path": params.path,
                        "startLine": params.start_line,
                        "endLine": params.end_line,
                    },
                )
            return ToolResult(text=format_file_blame(blob, params.repository, params.path))
        except Exception as e:
            return error_result("get-file-blame", "getting file blame", e)

    return Tool(
        name="get-file-blame",
        description="Show who last changed each range of lines in a file.",
        input_model=FileBlameInput,
        handler=get_file_blame,
    )
