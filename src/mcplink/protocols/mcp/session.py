"""Session negotiation — the ``initialize`` handshake and per-endpoint session state.

:class:`SessionNegotiator` owns one :class:`SessionState` per endpoint id.
At most one handshake is in flight per endpoint: concurrent callers of
:meth:`SessionNegotiator.ensure_session` attach to the pending attempt and
all observe its outcome.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from mcplink.errors import InitFailedError, TransportError
from mcplink.protocols.mcp.decoder import decode
from mcplink.protocols.mcp.models import JsonRpcNotification, JsonRpcRequest
from mcplink.protocols.mcp.transport import SESSION_HEADER, build_headers
from mcplink.registry.config import ClientSettings
from mcplink.utils.telemetry import (
    ATTR_PROTOCOL_VERSION,
    ATTR_SERVER_ID,
    ATTR_SERVER_URL,
    ATTR_SESSION_ID,
    get_tracer,
)

if TYPE_CHECKING:
    from mcplink.protocols.mcp.transport import MCPTransport
    from mcplink.registry.models import EndpointDescriptor

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

INITIALIZE_REQUEST_ID = 0


class SessionStatus(str, Enum):
    """Lifecycle of a negotiated session."""

    UNINITIALIZED = "uninitialized"
    NEGOTIATING = "negotiating"
    READY = "ready"
    FAILED = "failed"


@dataclass
class SessionState:
    """Mutable session record for one endpoint.

    ``session_id`` is only set while ``READY``; ``pending`` is only set
    while ``NEGOTIATING``.  All transitions go through the methods below.
    """

    status: SessionStatus = SessionStatus.UNINITIALIZED
    session_id: str | None = None
    pending: asyncio.Task[str | None] | None = None
    last_error: str | None = None
    aborted: asyncio.Task[str | None] | None = None
    abort_error: Exception | None = None

    def begin(self, task: asyncio.Task[str | None]) -> None:
        self.status = SessionStatus.NEGOTIATING
        self.session_id = None
        self.pending = task
        self.last_error = None

    def mark_ready(self, session_id: str | None) -> None:
        self.status = SessionStatus.READY
        self.session_id = session_id
        self.pending = None

    def mark_failed(self, error: str) -> None:
        self.status = SessionStatus.FAILED
        self.session_id = None
        self.pending = None
        self.last_error = error

    def mark_aborted(self, error: Exception) -> None:
        self.aborted = self.pending
        self.abort_error = error
        self.mark_failed(str(error))


class SessionNegotiator:
    """Performs and deduplicates the MCP handshake per endpoint.

    Usage::

        negotiator = SessionNegotiator(HttpTransport())
        session_id = await negotiator.ensure_session(endpoint)
    """

    def __init__(self, transport: MCPTransport, settings: ClientSettings | None = None) -> None:
        self._transport = transport
        self._settings = settings or ClientSettings()
        self._states: dict[str, SessionState] = {}
        self._lock = asyncio.Lock()

    def status(self, endpoint_id: str) -> SessionStatus:
        state = self._states.get(endpoint_id)
        return state.status if state else SessionStatus.UNINITIALIZED

    def session_id(self, endpoint_id: str) -> str | None:
        state = self._states.get(endpoint_id)
        return state.session_id if state else None

    def last_error(self, endpoint_id: str) -> str | None:
        state = self._states.get(endpoint_id)
        return state.last_error if state else None

    async def ensure_session(self, endpoint: EndpointDescriptor) -> str | None:
        """Make sure *endpoint* has a ready session and return its id.

        Returns immediately when the session is ready, joins the pending
        handshake when one is in flight, and otherwise starts a new one.
        ``FAILED`` is treated like ``UNINITIALIZED``.  The returned id is
        ``None`` for stateless servers.
        """
        async with self._lock:
            state = self._states.setdefault(endpoint.id, SessionState())
            if state.status is SessionStatus.READY:
                return state.session_id
            if state.pending is None:
                task = asyncio.create_task(
                    self._negotiate(endpoint, state), name=f"mcp-initialize:{endpoint.id}"
                )
                task.add_done_callback(_retrieve_exception)
                state.begin(task)
                logger.debug("Starting MCP handshake with %s", endpoint.id)
            else:
                task = state.pending
                logger.debug("Joining in-flight MCP handshake with %s", endpoint.id)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                # Every waiter of an aborted attempt sees the abort cause.
                if state.aborted is task and state.abort_error is not None:
                    raise state.abort_error
                raise InitFailedError(f"handshake with {endpoint.id} was aborted") from None
            raise

    def abort(self, endpoint_id: str, error: Exception) -> None:
        """Cancel an in-flight handshake and mark the session failed.

        Callers still waiting on the handshake are failed with *error*.
        """
        state = self._states.get(endpoint_id)
        if state is None or state.pending is None:
            return
        task = state.pending
        state.mark_aborted(error)
        task.cancel()
        logger.info("Aborted MCP handshake with %s: %s", endpoint_id, error)

    def invalidate(self, endpoint_id: str, reason: str) -> None:
        """Mark a ready session as failed so the next call renegotiates."""
        state = self._states.get(endpoint_id)
        if state is not None and state.status is SessionStatus.READY:
            state.mark_failed(reason)
            logger.info("Invalidated MCP session for %s: %s", endpoint_id, reason)

    def reset(self, endpoint_id: str) -> None:
        """Forget the session for *endpoint_id* without contacting the server."""
        state = self._states.pop(endpoint_id, None)
        if state is None:
            return
        if state.pending is not None:
            state.pending.cancel()
        logger.info("Reset MCP session state for %s", endpoint_id)

    async def _negotiate(self, endpoint: EndpointDescriptor, state: SessionState) -> str | None:
        task = asyncio.current_task()
        try:
            with _tracer.start_as_current_span("mcp.initialize") as span:
                span.set_attribute(ATTR_SERVER_ID, endpoint.id)
                span.set_attribute(ATTR_SERVER_URL, endpoint.url)
                span.set_attribute(ATTR_PROTOCOL_VERSION, self._settings.protocol_version)
                session_id = await self._handshake(endpoint)
                if session_id:
                    span.set_attribute(ATTR_SESSION_ID, session_id)
        except (Exception, asyncio.CancelledError) as exc:
            # A stale attempt (aborted or reset) must not touch a newer one.
            if state.pending is task:
                state.mark_failed(str(exc) or exc.__class__.__name__)
            logger.debug("MCP handshake with %s failed: %r", endpoint.id, exc)
            raise

        if state.pending is task:
            state.mark_ready(session_id)
        logger.info("MCP session established with %s (session: %s)", endpoint.id, session_id)
        return session_id

    async def _handshake(self, endpoint: EndpointDescriptor) -> str | None:
        request = JsonRpcRequest(
            id=INITIALIZE_REQUEST_ID,
            method="initialize",
            params={
                "protocolVersion": self._settings.protocol_version,
                "capabilities": {},
                "clientInfo": {
                    "name": self._settings.client_name,
                    "version": self._settings.client_version,
                },
            },
        )
        response = await self._transport.post(
            endpoint.url, request.model_dump(), build_headers(endpoint)
        )
        if not response.is_success:
            raise InitFailedError(f"HTTP {response.status_code} {response.reason_phrase}".strip())

        session_id = response.headers.get(SESSION_HEADER)
        if session_id is None:
            logger.debug("%s returned no %s header; continuing without one", endpoint.id, SESSION_HEADER)

        envelope = decode(response.text, response.headers.get("content-type"))
        if envelope.error is not None:
            raise InitFailedError(envelope.error.message)

        await self._notify_initialized(endpoint, session_id)
        return session_id

    async def _notify_initialized(self, endpoint: EndpointDescriptor, session_id: str | None) -> None:
        """Send ``notifications/initialized``; failures are logged, never raised."""
        notification = JsonRpcNotification(method="notifications/initialized")
        try:
            response = await self._transport.post(
                endpoint.url,
                notification.model_dump(exclude_none=True),
                build_headers(endpoint, session_id),
            )
        except TransportError as exc:
            logger.warning("Failed to send initialized notification to %s: %s", endpoint.id, exc)
            return
        if not response.is_success:
            logger.warning(
                "Failed to send initialized notification to %s: HTTP %d",
                endpoint.id,
                response.status_code,
            )


def _retrieve_exception(task: asyncio.Task[str | None]) -> None:
    # Every caller may have stopped waiting; mark the outcome as retrieved.
    if not task.cancelled():
        task.exception()
