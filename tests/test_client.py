"""Tests for the Sourcegraph GraphQL client."""

import json

import httpx
import pytest

from sourcegraph_mcp.config import SourcegraphSettings
from sourcegraph_mcp.core.errors import ConfigurationError, UpstreamAPIError, UpstreamTimeoutError
from sourcegraph_mcp.core.types import SearchType
from sourcegraph_mcp.search import graphql
from sourcegraph_mcp.search.client import MISSING_CONFIG_MESSAGE, SourcegraphClient


def make_client(handler) -> SourcegraphClient:
    return SourcegraphClient(
        url="https://sg.example.com/",
        token="sgp_abc",
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )


class TestClientConfiguration:
    """Tests for client construction."""

    def test_missing_token(self):
        """Test a missing token is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            SourcegraphClient(url="https://sg.example.com", token="")
        assert str(exc_info.value) == MISSING_CONFIG_MESSAGE

    def test_from_unconfigured_settings(self):
        """Test from_settings refuses incomplete settings."""
        settings = SourcegraphSettings(_env_file=None, sourcegraph_url="", sourcegraph_token="")

        with pytest.raises(ConfigurationError):
            SourcegraphClient.from_settings(settings)

    @pytest.mark.asyncio
    async def test_from_settings_posts_to_graphql_endpoint(self):
        """Test a client built from settings posts to <SOURCEGRAPH_URL>/.api/graphql."""
        settings = SourcegraphSettings(
            _env_file=None, sourcegraph_url="https://sg.example.com/", sourcegraph_token="sgp_abc"
        )
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"data": {"currentUser": {"username": "jane"}}})

        async with SourcegraphClient.from_settings(settings, transport=httpx.MockTransport(handler)) as client:
            await client.execute(graphql.CURRENT_USER_QUERY)

        assert urls == ["https://sg.example.com/.api/graphql"]

    def test_url_normalized(self):
        """Test the trailing slash is removed from the URL."""
        client = make_client(lambda request: httpx.Response(200, json={"data": {}}))

        assert client.url == "https://sg.example.com"


class TestExecute:
    """Tests for GraphQL execution."""

    @pytest.mark.asyncio
    async def test_search_request_shape(self):
        """Test the request carries the token header, document and variables."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"data": {"search": {"results": {"matchCount": 1, "results": [{"__typename": "FileMatch"}]}}}},
            )

        async with make_client(handler) as client:
            results = await client.search("foo type:file count:20", SearchType.FILE)

        assert seen["url"] == "https://sg.example.com/.api/graphql"
        assert seen["auth"] == "token sgp_abc"
        assert seen["body"]["query"] == graphql.FILE_SEARCH_QUERY
        assert seen["body"]["variables"] == {"query": "foo type:file count:20"}
        assert results["matchCount"] == 1

    @pytest.mark.asyncio
    async def test_commit_search_uses_commit_document(self):
        """Test the document follows the search type."""
        documents = []

        def handler(request: httpx.Request) -> httpx.Response:
            documents.append(json.loads(request.content)["query"])
            return httpx.Response(200, json={"data": {"search": None}})

        async with make_client(handler) as client:
            results = await client.search("type:commit", SearchType.COMMIT)

        assert documents == [graphql.COMMIT_SEARCH_QUERY]
        assert results == {}

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        """Test a non-empty errors array raises UpstreamAPIError."""
        errors = [{"message": "invalid query"}]

        def handler(request):
            return httpx.Response(200, json={"data": None, "errors": errors})

        async with make_client(handler) as client:
            with pytest.raises(UpstreamAPIError) as exc_info:
                await client.execute(graphql.CURRENT_USER_QUERY)

        assert str(exc_info.value) == f"Sourcegraph API Error: {json.dumps(errors)}"
        assert exc_info.value.errors == errors

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        """Test non-2xx responses raise with the status code."""
        def handler(request):
            return httpx.Response(401, text="Unauthorized")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamAPIError) as exc_info:
                await client.execute(graphql.CURRENT_USER_QUERY)

        assert exc_info.value.status_code == 401
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        """Test transport timeouts surface as UpstreamTimeoutError."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamTimeoutError) as exc_info:
                await client.execute(graphql.CURRENT_USER_QUERY)

        assert "timed out after 2.0s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        """Test connection failures surface as UpstreamAPIError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamAPIError) as exc_info:
                await client.execute(graphql.CURRENT_USER_QUERY)

        assert not isinstance(exc_info.value, UpstreamTimeoutError)

    @pytest.mark.asyncio
    async def test_current_user(self):
        """Test current_user returns the username."""
        def handler(request):
            return httpx.Response(200, json={"data": {"currentUser": {"username": "jane"}}})

        async with make_client(handler) as client:
            assert await client.current_user() == "jane"

    @pytest.mark.asyncio
    async def test_blob_lsif(self):
        """Test blob_lsif digs the lsif object out of the response."""
        lsif = {"definitions": {"nodes": []}}

        def handler(request):
            return httpx.Response(
                200, json={"data": {"repository": {"commit": {"blob": {"lsif": lsif}}}}}
            )

        async with make_client(handler) as client:
            assert await client.blob_lsif(graphql.DEFINITIONS_QUERY, {"repository": "r"}) == lsif

    @pytest.mark.asyncio
    async def test_vulnerabilities_default(self):
        """Test a missing vulnerabilities field yields an empty list."""
        def handler(request):
            return httpx.Response(200, json={"data": {}})

        async with make_client(handler) as client:
            result = await client.vulnerabilities(graphql.CVE_LOOKUP_QUERY, {"limit": 5})

        assert result == {"nodes": [], "totalCount": 0}
