"""SSE session registry and message router.

The registry owns the mapping from session id to transport handle. A session
is registered only once its handle is attached to the server, so routing can
never observe a half-initialised session, and it is removed as soon as its
connection closes or it has been idle for longer than the configured timeout.

Routing policy for an inbound message:

1. A known, open session id routes to that session.
2. Otherwise, in lenient mode, the message goes to any open session. This
   is a single-client convenience and gives no multi-client guarantee.
   In strict mode the message is rejected instead.
3. With no open sessions the message is rejected with "No active connections".
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

from sourcegraph_mcp.core.errors import (
    NoActiveSessionsError,
    SessionNotFoundError,
    TransportError,
)
from sourcegraph_mcp.core.types import RoutingMode, SessionState

logger = logging.getLogger(__name__)

SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits


@runtime_checkable
class TransportHandle(Protocol):
    @property
    def closed(self) -> bool: ...
    def start(self, server: Any) -> None: ...
    async def handle_post_message(self, payload: Any) -> None: ...
    def close(self) -> None: ...


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(SESSION_ID_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def generate_session_id() -> str:
    """Random fragment plus a millisecond timestamp, both base 36."""
    random_part = "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(13))
    return f"{random_part}-{_base36(time.time_ns() // 1_000_000)}"


@dataclass
class Session:
    """One client connection bound to its transport handle."""
    session_id: str
    transport: TransportHandle
    state: SessionState = SessionState.OPENING
    created_at: float = 0.0
    last_activity: float = 0.0
    messages_routed: int = field(default=0)

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN and not self.transport.closed

    def mark_open(self) -> None:
        if self.state != SessionState.OPENING:
            raise TransportError(f"Session {self.session_id} cannot open from state {self.state.value}")
        self.state = SessionState.OPEN

    def mark_closed(self) -> None:
        self.state = SessionState.CLOSED

    def touch(self, now: float) -> None:
        self.last_activity = now
        self.messages_routed += 1


class SessionRegistry:
    """Owns every open SSE session and routes POSTed messages to them.

    Usage:
        registry = SessionRegistry(lambda sid: SseTransport(sid), RoutingMode.LENIENT)
        await registry.start()
        session = registry.open_session(server, request.query_params.get("sessionId"))
        await registry.route_message(session_id, payload)
        registry.close_session(session.session_id)
        await registry.shutdown()
    """

    def __init__(
        self,
        transport_factory: Callable[[str], TransportHandle],
        routing_mode: RoutingMode = RoutingMode.LENIENT,
        idle_timeout: float = 1800.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the registry.

        Args:
            transport_factory: Builds a transport handle for a session id.
            routing_mode: STRICT rejects unknown or missing session ids,
                LENIENT falls back to any open session.
            idle_timeout: Seconds without routed messages before a session
                is evicted. 0 disables eviction.
            sweep_interval: Seconds between idle sweeps.
            clock: Monotonic time source.
        """
        self._transport_factory = transport_factory
        self.routing_mode = routing_mode
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def open_session(self, server: Any, requested_id: str | None = None) -> Session:
        """Create a session, attach it to ``server`` and register it.

        Args:
            server: Object whose ``handle_request`` processes this session's messages.
            requested_id: Client-supplied session id; one is generated when empty.

        Returns:
            The registered, OPEN session.

        Raises:
            Exception: Whatever attaching the transport raised. The session is
                not registered in that case.
        """
        session_id = requested_id or generate_session_id()
        now = self._clock()
        transport = self._transport_factory(session_id)
        session = Session(
            session_id=session_id,
            transport=transport,
            created_at=now,
            last_activity=now,
        )

        try:
            transport.start(server)
        except Exception:
            session.mark_closed()
            transport.close()
            raise

        previous = self._sessions.get(session_id)
        if previous is not None:
            logger.warning(f"Session {session_id} reopened, closing the previous connection")
            self.close_session(session_id)

        session.mark_open()
        self._sessions[session_id] = session
        logger.info(f"Session opened: {session_id} ({len(self._sessions)} active)")
        return session

    def resolve(self, session_id: str | None) -> Session:
        """Pick the session a message should be routed to.

        Raises:
            SessionNotFoundError: In strict mode, when the id is missing or unknown.
            NoActiveSessionsError: When no session is open.
        """
        if session_id:
            session = self._sessions.get(session_id)
            if session is not None and session.is_open:
                return session

        if self.routing_mode == RoutingMode.STRICT:
            raise SessionNotFoundError(session_id)

        for session in self._sessions.values():
            if session.is_open:
                logger.info(
                    f"Session {session_id or '(none)'} not found, "
                    f"routing to open session {session.session_id}"
                )
                return session

        raise NoActiveSessionsError()

    async def route_message(self, session_id: str | None, payload: Any) -> Session:
        """Route a JSON-RPC payload to a session's transport.

        Returns:
            The session the payload was delivered to.
        """
        session = self.resolve(session_id)
        session.touch(self._clock())
        await session.transport.handle_post_message(payload)
        return session

    def close_session(self, session_id: str, session: Session | None = None) -> None:
        """Remove and close a session. Unknown ids are ignored.

        When ``session`` is given, the id is only removed while it still maps
        to that session, so a connection that was replaced by a reopen cannot
        close its replacement.
        """
        registered = self._sessions.get(session_id)
        if session is None:
            session = registered
        if session is None:
            return

        if session.state != SessionState.CLOSED:
            session.mark_closed()
            session.transport.close()
        if registered is not session:
            return
        del self._sessions[session_id]
        logger.info(f"Session closed: {session_id} ({len(self._sessions)} active)")

    def sweep_idle(self, now: float | None = None) -> list[str]:
        """Close every session idle for longer than ``idle_timeout``.

        Returns:
            Ids of the evicted sessions.
        """
        if self.idle_timeout <= 0:
            return []
        now = self._clock() if now is None else now
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if now - session.last_activity > self.idle_timeout or session.transport.closed
        ]
        for session_id in expired:
            logger.info(f"Evicting idle session {session_id}")
            self.close_session(session_id)
        return expired

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep_idle()

    async def start(self) -> None:
        if self._sweeper is None and self.idle_timeout > 0:
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def shutdown(self) -> None:
        """Stop the idle sweeper and close every session."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        for session_id in list(self._sessions):
            self.close_session(session_id)
