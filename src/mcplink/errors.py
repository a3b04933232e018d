"""Error taxonomy shared by the registry, session, and client layers.

Registry and state-precondition errors signal caller misuse and are never
retried.  Everything under :class:`ProtocolError` (plus
:class:`ConnectTimeoutError`) comes from the network and always surfaces to
the caller of the triggering client operation.
"""

from __future__ import annotations


class MCPLinkError(Exception):
    """Base error for every failure raised by this package."""


class ConfigError(MCPLinkError):
    """A server descriptor or servers file failed validation."""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ConflictError(MCPLinkError):
    """A server with the same id is already registered."""

    def __init__(self, server_id: str, detail: str = "") -> None:
        self.server_id = server_id
        super().__init__(detail or f"Server already registered: {server_id}")


class ServerNotFoundError(MCPLinkError):
    """No server is registered under the requested id."""

    def __init__(self, server_id: str) -> None:
        self.server_id = server_id
        super().__init__(f"Server not found: {server_id}")


class PolicyError(MCPLinkError):
    """The registry refused an operation on a built-in server."""

    def __init__(self, server_id: str) -> None:
        self.server_id = server_id
        super().__init__(f"Built-in server cannot be removed: {server_id}")


# ---------------------------------------------------------------------------
# Client state preconditions
# ---------------------------------------------------------------------------


class NoServerSelectedError(MCPLinkError):
    """An operation needs a server but none is selected."""

    def __init__(self) -> None:
        super().__init__("No MCP server selected")


class NotConnectedError(MCPLinkError):
    """An operation needs an established connection."""

    def __init__(self, operation: str = "") -> None:
        self.operation = operation
        msg = "Not connected to MCP server"
        if operation:
            msg += f" (required by {operation})"
        super().__init__(msg)


class ConnectTimeoutError(MCPLinkError):
    """The server did not answer within the client-side connect budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Connection timed out after {timeout}s")


# ---------------------------------------------------------------------------
# Wire protocol
# ---------------------------------------------------------------------------


class ProtocolError(MCPLinkError):
    """Base error for failures on the wire or in a JSON-RPC envelope."""


class MalformedJsonError(ProtocolError):
    """The response body is not a valid JSON-RPC envelope."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Malformed JSON response" + (f": {detail}" if detail else ""))


class MalformedStreamError(ProtocolError):
    """An event-stream response carried no ``data:`` line."""

    def __init__(self, detail: str = "no data line in event stream") -> None:
        self.detail = detail
        super().__init__(f"Malformed event stream: {detail}")


class InitFailedError(ProtocolError):
    """The ``initialize`` handshake was rejected."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"MCP initialize failed: {detail}")


class TransportError(ProtocolError):
    """The HTTP exchange failed.

    ``status`` is the HTTP status code of a non-success response, or
    ``None`` when no response was received at all.
    """

    def __init__(self, status: int | None, detail: str = "") -> None:
        self.status = status
        self.detail = detail
        msg = f"HTTP {status}" if status is not None else "HTTP request failed"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class RemoteError(ProtocolError):
    """The server answered with a JSON-RPC ``error`` object."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"MCP error {code}: {message}")
