"""Server-Sent Events transport for one MCP session."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator

from sourcegraph_mcp.core.errors import TransportClosedError, TransportError

logger = logging.getLogger(__name__)

_CLOSE = object()


def format_sse_event(event: str, data: str) -> str:
    lines = "".join(f"data: {line}\n" for line in data.split("\n"))
    return f"event: {event}\n{lines}\n"


class SseTransport:
    """Transport handle for a single SSE session.

    Inbound messages are queued and handled one at a time by a worker task,
    so responses leave in the order their requests arrived and writes to the
    stream never interleave.
    """

    def __init__(self, session_id: str, endpoint: str, keepalive_interval: float = 15.0):
        self.session_id = session_id
        self.endpoint = endpoint
        self.keepalive_interval = keepalive_interval
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._server: Any = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, server: Any) -> None:
        """Attach the server and start processing queued messages."""
        if self._closed:
            raise TransportClosedError(f"Transport for session {self.session_id} is closed")
        if self._worker is not None:
            raise TransportError(f"Transport for session {self.session_id} already started")
        self._server = server
        self._worker = asyncio.create_task(self._process_inbox())

    async def handle_post_message(self, payload: Any) -> None:
        if self._closed:
            raise TransportClosedError(f"Transport for session {self.session_id} is closed")
        await self._inbox.put(payload)

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise TransportClosedError(f"Transport for session {self.session_id} is closed")
        await self._outbox.put(message)

    async def _process_inbox(self) -> None:
        while True:
            payload = await self._inbox.get()
            if payload is _CLOSE:
                return
            try:
                response = await self._server.handle_request(payload)
            except Exception as e:
                logger.error(f"Session {self.session_id}: error handling message: {e}", exc_info=True)
                request_id = payload.get("id") if isinstance(payload, dict) else None
                response = {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32603, "message": str(e)},
                }
            if response is not None and not self._closed:
                await self._outbox.put(response)

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the transport is closed.

        The first frame is the ``endpoint`` event telling the client where
        to POST its messages.
        """
        yield format_sse_event("endpoint", self.endpoint)
        while True:
            try:
                message = await asyncio.wait_for(self._outbox.get(), timeout=self.keepalive_interval)
            except asyncio.TimeoutError:
                if self._closed:
                    return
                yield ": keepalive\n\n"
                continue
            if message is _CLOSE:
                return
            yield format_sse_event("message", json.dumps(message))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._inbox.put_nowait(_CLOSE)
        self._outbox.put_nowait(_CLOSE)
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()

    async def wait_closed(self) -> None:
        if self._worker is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
