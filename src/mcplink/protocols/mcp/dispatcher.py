"""RpcDispatcher — sends one JSON-RPC request on a negotiated session."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

from mcplink.errors import RemoteError, TransportError
from mcplink.protocols.mcp.decoder import decode
from mcplink.protocols.mcp.models import JsonRpcRequest
from mcplink.protocols.mcp.transport import build_headers
from mcplink.utils.telemetry import (
    ATTR_METHOD,
    ATTR_SERVER_ID,
    ATTR_SERVER_URL,
    ATTR_SESSION_ID,
    get_tracer,
)

if TYPE_CHECKING:
    from mcplink.protocols.mcp.session import SessionNegotiator
    from mcplink.protocols.mcp.transport import MCPTransport
    from mcplink.registry.models import EndpointDescriptor

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

# Streamable-HTTP servers answer 404 once they have dropped a session.
_SESSION_EXPIRED_STATUS = 404


class RpcDispatcher:
    """Builds, sends and decodes a single JSON-RPC call.

    Every call first awaits :meth:`SessionNegotiator.ensure_session`, so
    the first request to an endpoint performs the handshake as a side
    effect.  Request ids come from a per-dispatcher monotonic counter.
    """

    def __init__(self, transport: MCPTransport, negotiator: SessionNegotiator) -> None:
        self._transport = transport
        self._negotiator = negotiator
        self._ids = itertools.count(1)

    async def call(
        self,
        endpoint: EndpointDescriptor,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Invoke *method* on *endpoint* and return the envelope's ``result``.

        Raises:
            TransportError: Non-success HTTP status or no response.
            RemoteError: The envelope carried an ``error`` object.
            MalformedJsonError, MalformedStreamError: Undecodable body.
        """
        session_id = await self._negotiator.ensure_session(endpoint)
        request = JsonRpcRequest(id=next(self._ids), method=method, params=params or {})

        with _tracer.start_as_current_span("mcp.request") as span:
            span.set_attribute(ATTR_SERVER_ID, endpoint.id)
            span.set_attribute(ATTR_SERVER_URL, endpoint.url)
            span.set_attribute(ATTR_METHOD, method)
            if session_id:
                span.set_attribute(ATTR_SESSION_ID, session_id)

            response = await self._transport.post(
                endpoint.url, request.model_dump(), build_headers(endpoint, session_id)
            )
            if not response.is_success:
                if session_id and response.status_code == _SESSION_EXPIRED_STATUS:
                    self._negotiator.invalidate(endpoint.id, "session expired on server")
                raise TransportError(response.status_code, response.reason_phrase)

            envelope = decode(response.text, response.headers.get("content-type"))

        if envelope.error is not None:
            logger.debug(
                "%s on %s returned error %d: %s",
                method,
                endpoint.id,
                envelope.error.code,
                envelope.error.message,
            )
            raise RemoteError(envelope.error.code, envelope.error.message)
        return envelope.result or {}
