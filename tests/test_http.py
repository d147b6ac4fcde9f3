"""Tests for the HTTP/SSE transport app and the REST search API."""

import asyncio
import json

import httpx
import pytest
from starlette.testclient import TestClient
from unittest.mock import AsyncMock

from sourcegraph_mcp.api import create_api_app
from sourcegraph_mcp.core.types import RoutingMode, SearchType
from sourcegraph_mcp.transport.http import create_app, create_registry
from sourcegraph_mcp.transport.sessions import SessionRegistry
from sourcegraph_mcp.transport.sse import format_sse_event

from conftest import make_settings


def client_for(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


async def next_message(transport, timeout=2.0):
    """Read the first message event after the endpoint event."""
    async def read():
        async for frame in transport.events():
            if frame.startswith("event: message"):
                return json.loads(frame.split("data: ", 1)[1])
    return await asyncio.wait_for(read(), timeout)


class ShortLivedTransport:
    """Transport whose stream ends right after the endpoint event."""

    def __init__(self, session_id):
        self.session_id = session_id
        self._closed = False

    @property
    def closed(self):
        return self._closed

    def start(self, server):
        pass

    async def handle_post_message(self, payload):
        pass

    async def events(self):
        yield format_sse_event("endpoint", f"/messages?sessionId={self.session_id}")

    def close(self):
        self._closed = True


class UnstartableTransport(ShortLivedTransport):
    def start(self, server):
        raise RuntimeError("cannot attach")


class SseStream:
    """Drives one GET /sse request at the ASGI level and keeps it open.

    The response body is read frame by frame as the app sends it, and the
    client disconnects only when ``disconnect`` is called.
    """

    def __init__(self, app, query=""):
        self.app = app
        self.query = query
        self.sent = asyncio.Queue()
        self._requested = False
        self._disconnected = asyncio.Event()
        self.task = None

    async def _receive(self):
        if not self._requested:
            self._requested = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message):
        await self.sent.put(message)

    async def open(self, timeout=2.0):
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/sse",
            "raw_path": b"/sse",
            "root_path": "",
            "query_string": self.query.encode(),
            "headers": [(b"host", b"test"), (b"accept", b"text/event-stream")],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        self.task = asyncio.create_task(self.app(scope, self._receive, self._send))
        start = await asyncio.wait_for(self.sent.get(), timeout)
        assert start["type"] == "http.response.start"
        return start["status"]

    async def next_frame(self, timeout=2.0):
        """Return the next non-empty body chunk, or None once the body ends."""
        while True:
            message = await asyncio.wait_for(self.sent.get(), timeout)
            body = message.get("body", b"")
            if body:
                return body.decode()
            if not message.get("more_body", False):
                return None

    async def disconnect(self, timeout=2.0):
        self._disconnected.set()
        await asyncio.wait_for(self.task, timeout)


def endpoint_of(frame):
    assert frame.startswith("event: endpoint\n")
    return frame.split("data: ", 1)[1].strip()


# ============================================================================
# MCP HTTP/SSE app
# ============================================================================

class TestMcpApp:
    """Tests for the MCP HTTP/SSE application."""

    @pytest.mark.asyncio
    async def test_index(self, server):
        """Test the index reports name, status and tools."""
        async with client_for(create_app(server, server.settings)) as client:
            response = await client.get("/")

        body = response.json()
        assert response.status_code == 200
        assert body["name"] == "Sourcegraph MCP Server"
        assert body["status"] == "running"
        assert "search-code" in body["tools"]

    @pytest.mark.asyncio
    async def test_health(self, server):
        """Test the health endpoint reports sessions and routing mode."""
        async with client_for(create_app(server, server.settings)) as client:
            response = await client.get("/health")

        assert response.json() == {
            "status": "ok",
            "transport": "sse",
            "sessions": 0,
            "routingMode": "lenient",
        }

    @pytest.mark.asyncio
    async def test_post_without_sessions(self, server):
        """Test a message with no open session is rejected with 400."""
        async with client_for(create_app(server, server.settings)) as client:
            response = await client.post("/messages?sessionId=abc", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})

        assert response.status_code == 400
        assert response.json() == {"error": "No active connections"}

    @pytest.mark.asyncio
    async def test_post_invalid_json(self, server):
        """Test a malformed body is rejected with 400."""
        async with client_for(create_app(server, server.settings)) as client:
            response = await client.post(
                "/messages", content=b"{not json", headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_post_routes_to_named_session(self, server):
        """Test a message reaches the stream of the session it names."""
        app = create_app(server, server.settings)
        registry = app.state.registry
        first = registry.open_session(server, "first")
        second = registry.open_session(server, "second")

        async with client_for(app) as client:
            response = await client.post(
                "/messages?sessionId=second", json={"jsonrpc": "2.0", "id": 5, "method": "ping"}
            )

        assert response.status_code == 202
        assert response.json() == {"status": "accepted", "sessionId": "second"}
        assert (await next_message(second.transport))["id"] == 5
        assert first.transport._outbox.empty()
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_session_falls_back_to_open_session(self, server):
        """Test an unknown sessionId is delivered to the one open session."""
        app = create_app(server, server.settings)
        registry = app.state.registry
        session = registry.open_session(server, "live")

        async with client_for(app) as client:
            response = await client.post(
                "/messages?sessionId=stale-id",
                json={"jsonrpc": "2.0", "id": 42, "method": "tools/call",
                      "params": {"name": "echo", "arguments": {"message": "world"}}},
            )

        assert response.status_code == 202
        assert response.json()["sessionId"] == "live"
        message = await next_message(session.transport)
        assert message["id"] == 42
        assert "world" in message["result"]["content"][0]["text"]
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_session_id_from_body(self, server):
        """Test the sessionId may be carried in the JSON body."""
        settings = make_settings(routing_mode=RoutingMode.STRICT)
        app = create_app(server, settings)
        registry = app.state.registry
        session = registry.open_session(server, "body-id")

        async with client_for(app) as client:
            response = await client.post(
                "/messages", json={"jsonrpc": "2.0", "id": 3, "method": "ping", "sessionId": "body-id"}
            )

        assert response.status_code == 202
        assert (await next_message(session.transport))["id"] == 3
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_unknown_session(self, server):
        """Test strict routing refuses to fall back."""
        settings = make_settings(routing_mode=RoutingMode.STRICT)
        app = create_app(server, settings)
        registry = app.state.registry
        session = registry.open_session(server, "live")

        async with client_for(app) as client:
            response = await client.post("/messages?sessionId=stale", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})

        assert response.status_code == 400
        assert response.json() == {"error": "Session not found: stale"}
        assert session.transport._inbox.empty()
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_sse_stream_closes_session(self, server):
        """Test the session is removed once its stream ends."""
        registry = SessionRegistry(ShortLivedTransport)
        app = create_app(server, server.settings, registry=registry)

        async with client_for(app) as client:
            response = await client.get("/sse?sessionId=abc")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text == "event: endpoint\ndata: /messages?sessionId=abc\n\n"
        assert "abc" not in registry

    @pytest.mark.asyncio
    async def test_sse_session_full_cycle(self, server):
        """Test open, POST and disconnect through the real /sse route."""
        app = create_app(server, server.settings)
        registry = app.state.registry
        stream = SseStream(app)

        assert await stream.open() == 200
        endpoint = endpoint_of(await stream.next_frame())
        session_id = endpoint.split("sessionId=", 1)[1]
        assert session_id in registry
        transport = registry.get(session_id).transport

        async with client_for(app) as client:
            response = await client.post(
                endpoint,
                json={"jsonrpc": "2.0", "id": 9, "method": "tools/call",
                      "params": {"name": "echo", "arguments": {"message": "stream"}}},
            )
        assert response.status_code == 202

        frame = await stream.next_frame()
        assert frame.startswith("event: message\n")
        message = json.loads(frame.split("data: ", 1)[1])
        assert message["id"] == 9
        assert message["result"]["content"][0]["text"] == "Hello stream"

        await stream.disconnect()

        assert session_id not in registry
        assert transport.closed

    @pytest.mark.asyncio
    async def test_sse_reopen_keeps_new_stream(self, server):
        """Test reopening a sessionId ends the old stream and leaves the new one routed."""
        app = create_app(server, server.settings)
        registry = app.state.registry
        old = SseStream(app, "sessionId=x")
        new = SseStream(app, "sessionId=x")

        await old.open()
        assert endpoint_of(await old.next_frame()) == "/messages?sessionId=x"
        await new.open()
        assert endpoint_of(await new.next_frame()) == "/messages?sessionId=x"

        assert await old.next_frame() is None
        await asyncio.wait_for(old.task, 2.0)
        await asyncio.sleep(0)

        assert "x" in registry
        assert registry.get("x").is_open
        assert not new.task.done()

        async with client_for(app) as client:
            response = await client.post("/messages?sessionId=x", json={"jsonrpc": "2.0", "id": 4, "method": "ping"})
        assert response.status_code == 202
        frame = await new.next_frame()
        assert json.loads(frame.split("data: ", 1)[1]) == {"jsonrpc": "2.0", "id": 4, "result": {}}

        await new.disconnect()
        assert "x" not in registry

    @pytest.mark.asyncio
    async def test_sse_open_failure(self, server):
        """Test a failure to open the session is a 500 and nothing is registered."""
        registry = SessionRegistry(UnstartableTransport)
        app = create_app(server, server.settings, registry=registry)

        async with client_for(app) as client:
            response = await client.get("/sse")

        assert response.status_code == 500
        assert response.text.startswith("Server error:")
        assert len(registry) == 0

    def test_lifespan_starts_and_stops_registry(self, server):
        """Test the app lifespan runs the idle sweeper, then closes sessions and the translator."""
        app = create_app(server, server.settings)
        registry = app.state.registry
        server.translator.close = AsyncMock()

        with TestClient(app) as client:
            assert registry._sweeper is not None
            assert client.get("/health").json()["sessions"] == 0

        assert registry._sweeper is None
        server.translator.close.assert_awaited_once()

    def test_registry_from_settings(self):
        """Test the registry is configured from server settings."""
        settings = make_settings(routing_mode=RoutingMode.STRICT, session_idle_timeout=30)

        registry = create_registry(settings)

        assert registry.routing_mode == RoutingMode.STRICT
        assert registry.idle_timeout == 30


# ============================================================================
# REST search API
# ============================================================================

class TestSearchApi:
    """Tests for the REST search API."""

    @pytest.mark.asyncio
    async def test_index(self, server):
        """Test the status line."""
        async with client_for(create_api_app(server)) as client:
            response = await client.get("/")

        assert response.text == "Sourcegraph Multi-Search Server is running"

    @pytest.mark.asyncio
    async def test_direct_query(self, server, fake_client):
        """Test directQuery skips translation and requests every result."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/search/code", json={"query": "useState", "directQuery": True})

        body = response.json()
        assert response.status_code == 200
        assert body["originalQuery"] == "useState"
        assert body["finalQuery"] == "useState type:file count:all"
        assert fake_client.searches == [("useState type:file count:all", SearchType.FILE)]

    @pytest.mark.asyncio
    async def test_translated_commit_query(self, server, fake_client):
        """Test plain-English queries are translated first."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/search/commits", json={"query": "commits by jane"})

        assert response.json()["finalQuery"] == "type:commit author:jane count:all"

    @pytest.mark.asyncio
    async def test_missing_query(self, server):
        """Test a request without a query is rejected."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/search/diffs", json={})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_kind(self, server):
        """Test unknown search kinds return 404."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/search/symbols", json={"query": "x"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unconfigured(self, unconfigured_settings, fallback_translator):
        """Test missing credentials produce a 500 with the configuration message."""
        from sourcegraph_mcp.mcp.server import MCPServer

        server = MCPServer(settings=unconfigured_settings, translator=fallback_translator)
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/search/code", json={"query": "x", "directQuery": True})

        assert response.status_code == 500
        assert "SOURCEGRAPH_URL" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_api_search_natural(self, server, fake_client):
        """Test /api/search runs natural-search for type natural."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/api/search", json={"query": "find parser", "type": "natural"})

        assert response.status_code == 200
        assert response.json()["content"][0]["text"].startswith("Translated query:")
        assert fake_client.searches == [("parser type:file count:20", SearchType.FILE)]

    @pytest.mark.asyncio
    async def test_api_search_bad_type(self, server):
        """Test /api/search rejects unknown types."""
        async with client_for(create_api_app(server)) as client:
            response = await client.post("/api/search", json={"query": "x", "type": "symbol"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_api_tools(self, server):
        """Test /api/tools lists registered tools."""
        async with client_for(create_api_app(server)) as client:
            response = await client.get("/api/tools")

        assert "debug" in response.json()["tools"]
