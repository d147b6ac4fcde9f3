"""Async client for the Sourcegraph GraphQL API."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from sourcegraph_mcp.config import SourcegraphSettings
from sourcegraph_mcp.core.errors import (
    ConfigurationError,
    UpstreamAPIError,
    UpstreamTimeoutError,
)
from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.search import graphql

logger = logging.getLogger(__name__)

GRAPHQL_PATH = "/.api/graphql"
MISSING_CONFIG_MESSAGE = (
    "Error: Sourcegraph URL or token not configured. "
    "Please set SOURCEGRAPH_URL and SOURCEGRAPH_TOKEN environment variables."
)


class SourcegraphClient:
    """Executes GraphQL documents against a Sourcegraph instance.

    Usage:
        async with SourcegraphClient.from_settings(settings.sourcegraph) as client:
            results = await client.search("foo type:file count:20", SearchType.FILE)
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not url or not token:
            raise ConfigurationError(MISSING_CONFIG_MESSAGE)
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.url,
            headers={
                "Authorization": f"token {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SourcegraphSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "SourcegraphClient":
        if not settings.is_configured:
            raise ConfigurationError(MISSING_CONFIG_MESSAGE)
        return cls(
            url=settings.sourcegraph_url,
            token=settings.sourcegraph_token.get_secret_value(),
            timeout=settings.sourcegraph_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SourcegraphClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def execute(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST a GraphQL document and return the ``data`` object.

        Raises:
            UpstreamTimeoutError: If the request exceeds the configured timeout.
            UpstreamAPIError: On transport failure, a non-2xx status, or a
                non-empty GraphQL ``errors`` array.
        """
        try:
            response = await self._client.post(
                GRAPHQL_PATH,
                json={"query": document, "variables": variables or {}},
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                f"Sourcegraph request timed out after {self.timeout}s", cause=e
            )
        except httpx.RequestError as e:
            raise UpstreamAPIError(f"No response from Sourcegraph API at {self.url}", cause=e)

        if response.is_error:
            raise UpstreamAPIError(
                f"Sourcegraph API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamAPIError(
                "Sourcegraph API returned invalid JSON",
                status_code=response.status_code,
                cause=e,
            )

        errors = body.get("errors")
        if errors:
            raise UpstreamAPIError(
                f"Sourcegraph API Error: {json.dumps(errors)}",
                status_code=response.status_code,
                errors=errors,
            )

        return body.get("data") or {}

    async def search(self, query: str, search_type: SearchType = SearchType.FILE) -> dict[str, Any]:
        """Run a search and return the ``search.results`` object."""
        logger.info(f"Searching Sourcegraph ({search_type.value}): {query}")
        data = await self.execute(graphql.SEARCH_QUERIES[search_type], {"query": query})
        return (data.get("search") or {}).get("results") or {}

    async def current_user(self) -> str | None:
        data = await self.execute(graphql.CURRENT_USER_QUERY)
        user = data.get("currentUser") or {}
        return user.get("username")

    async def blob_lsif(self, document: str, variables: dict[str, Any]) -> dict[str, Any] | None:
        """Execute a code-intelligence document and return ``blob.lsif``."""
        blob = await self.blob(document, variables)
        if blob is None:
            return None
        return blob.get("lsif")

    async def blob(self, document: str, variables: dict[str, Any]) -> dict[str, Any] | None:
        data = await self.execute(document, variables)
        repository = data.get("repository") or {}
        commit = repository.get("commit") or {}
        return commit.get("blob")

    async def vulnerabilities(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        data = await self.execute(document, variables)
        return data.get("vulnerabilities") or {"nodes": [], "totalCount": 0}
