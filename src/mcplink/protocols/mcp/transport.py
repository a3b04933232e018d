"""MCP HTTP transport — one JSON-RPC message per POST.

The transport knows nothing about sessions or envelopes; it sends a
message with the headers it is given and hands back the raw
:class:`httpx.Response`.  Header construction lives here so the
negotiator and the dispatcher attach identical headers.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from mcplink.errors import TransportError

if TYPE_CHECKING:
    from mcplink.registry.models import EndpointDescriptor

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"
MCP_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


def build_headers(endpoint: EndpointDescriptor, session_id: str | None = None) -> dict[str, str]:
    """Request headers for *endpoint*: content negotiation, auth, and session."""
    headers = {**MCP_HEADERS, **endpoint.auth_headers()}
    if session_id:
        headers[SESSION_HEADER] = session_id
    return headers


@runtime_checkable
class MCPTransport(Protocol):
    """Sends one JSON-RPC message and returns the HTTP response."""

    async def post(
        self, url: str, message: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response: ...

    async def close(self) -> None: ...


class HttpTransport:
    """POSTs JSON-RPC messages with :mod:`httpx`.

    Pass *client* to share a pooled :class:`httpx.AsyncClient` (or one
    built on :class:`httpx.MockTransport` in tests); the transport only
    closes clients it created itself.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    async def post(
        self, url: str, message: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        """POST *message* to *url*.

        Raises:
            TransportError: If no HTTP response was received.
        """
        logger.debug("POST %s %s", url, message.get("method"))
        try:
            response = await self._client.post(url, content=json.dumps(message), headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(None, str(exc) or exc.__class__.__name__) from exc
        logger.debug(
            "%s -> HTTP %d (%s)",
            message.get("method"),
            response.status_code,
            response.headers.get("content-type", "-"),
        )
        return response

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
