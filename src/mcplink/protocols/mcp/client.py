"""MCPClient — the facade a caller holds.

Wraps the :class:`ServerRegistry`, :class:`SessionNegotiator` and
:class:`RpcDispatcher` behind the connect / list / call / reset
operations, and tracks which server is selected.

State machine::

    NO_SERVER_SELECTED -> DISCONNECTED -> CONNECTING -> CONNECTED
                                              |             |
                                              v             v
                                            FAILED     DISCONNECTED
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, cast

from pydantic import BaseModel, Field, ValidationError

from mcplink.errors import (
    ConnectTimeoutError,
    MalformedJsonError,
    MCPLinkError,
    NoServerSelectedError,
    NotConnectedError,
)
from mcplink.protocols.mcp.dispatcher import RpcDispatcher
from mcplink.protocols.mcp.models import MCPResource, MCPToolDef, ToolCallResult
from mcplink.protocols.mcp.session import SessionNegotiator, SessionStatus
from mcplink.protocols.mcp.transport import HttpTransport, MCPTransport
from mcplink.registry.config import ClientSettings, load_builtin_servers, parse_descriptor
from mcplink.registry.models import EndpointDescriptor
from mcplink.registry.registry import ServerRegistry
from mcplink.utils.telemetry import ATTR_SERVER_ID, ATTR_TOOL_COUNT, ATTR_TOOL_NAME, get_tracer

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class ClientState(str, Enum):
    """Connection state of an :class:`MCPClient`."""

    NO_SERVER_SELECTED = "no_server_selected"
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class StatusReport(BaseModel):
    """Snapshot returned by :meth:`MCPClient.status`."""

    state: ClientState
    server_id: str | None = None
    connected: bool = False
    session_id: str | None = None
    tool_count: int = 0
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ReinitializeOutcome(BaseModel):
    """Result of :meth:`MCPClient.reinitialize`.

    The reset always succeeds; the reconnect outcome is reported
    separately in ``connected`` / ``error``.
    """

    reset: bool = True
    connected: bool = False
    tools: list[MCPToolDef] = Field(default_factory=list)
    session_id: str | None = None
    error: str | None = None


class MCPClient:
    """Async context manager exposing MCP tools from the selected server.

    Usage::

        async with MCPClient() as client:              # default server selected
            tools = await client.connect()
            result = await client.call_tool("list_projects", {"search": "infra"})
            print(result.text())
    """

    def __init__(
        self,
        registry: ServerRegistry | None = None,
        *,
        server_id: str | None = None,
        settings: ClientSettings | None = None,
        transport: MCPTransport | None = None,
    ) -> None:
        self._registry = registry if registry is not None else ServerRegistry(load_builtin_servers())
        self._settings = settings or ClientSettings()
        self._transport = transport or HttpTransport()
        self._negotiator = SessionNegotiator(self._transport, self._settings)
        self._dispatcher = RpcDispatcher(self._transport, self._negotiator)
        self._tools: list[MCPToolDef] = []
        self._last_error: str | None = None

        self._endpoint = (
            self._registry.resolve(server_id) if server_id else self._registry.get_default()
        )
        self._state = (
            ClientState.DISCONNECTED if self._endpoint else ClientState.NO_SERVER_SELECTED
        )

    async def __aenter__(self) -> MCPClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Forget the session and close the underlying transport."""
        if self._endpoint is not None:
            self._negotiator.reset(self._endpoint.id)
        await self._transport.close()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ClientState.CONNECTED

    @property
    def current_server(self) -> EndpointDescriptor | None:
        return self._endpoint

    @property
    def session_id(self) -> str | None:
        if self._endpoint is None:
            return None
        return self._negotiator.session_id(self._endpoint.id)

    @property
    def tools(self) -> list[MCPToolDef]:
        """The last fetched tool list (a copy)."""
        return list(self._tools)

    @property
    def registry(self) -> ServerRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Server selection
    # ------------------------------------------------------------------

    def list_servers(self) -> list[EndpointDescriptor]:
        return self._registry.list_all()

    def switch_server(self, server_id: str) -> EndpointDescriptor:
        """Select *server_id*, dropping the current session and tool cache.

        Does not connect.

        Raises:
            ServerNotFoundError: If *server_id* is not registered.
        """
        endpoint = self._registry.resolve(server_id)
        self._drop_session()
        self._endpoint = endpoint
        self._state = ClientState.DISCONNECTED
        logger.info("Switched MCP server to %s", endpoint.id)
        return endpoint

    def add_server(self, descriptor: EndpointDescriptor | Mapping[str, Any]) -> EndpointDescriptor:
        """Register a custom server.

        Raises:
            ConfigError: If a mapping fails validation.
            ConflictError: If the id is already registered.
        """
        if not isinstance(descriptor, EndpointDescriptor):
            descriptor = parse_descriptor(descriptor)
        return self._registry.add(descriptor)

    def remove_server(self, server_id: str) -> EndpointDescriptor:
        """Unregister a custom server.

        Removing the selected server falls back to the default server and
        clears the session and tool cache in the same step.

        Raises:
            PolicyError: If *server_id* is a built-in.
            ServerNotFoundError: If *server_id* is not registered.
        """
        removed = self._registry.remove(server_id)
        self._negotiator.reset(removed.id)
        if self._endpoint is not None and self._endpoint.id == removed.id:
            self._tools = []
            self._last_error = None
            self._endpoint = self._registry.get_default()
            self._state = (
                ClientState.DISCONNECTED if self._endpoint else ClientState.NO_SERVER_SELECTED
            )
            logger.info(
                "Removed selected server %s; fell back to %s",
                removed.id,
                self._endpoint.id if self._endpoint else "none",
            )
        return removed

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, server_id: str | None = None) -> list[MCPToolDef]:
        """Connect to *server_id* (or the selected server) and fetch its tools.

        The first ``tools/list`` performs the handshake.  The whole exchange
        is bounded by ``settings.connect_timeout``.

        Raises:
            NoServerSelectedError: If no server is selected.
            ConnectTimeoutError: If the budget runs out.
            ProtocolError: On any wire or remote failure.
        """
        if server_id is not None and (self._endpoint is None or self._endpoint.id != server_id):
            self.switch_server(server_id)
        endpoint = self._require_endpoint()
        self._state = ClientState.CONNECTING
        timeout = self._settings.connect_timeout

        with _tracer.start_as_current_span("mcp.connect") as span:
            span.set_attribute(ATTR_SERVER_ID, endpoint.id)
            try:
                result = await asyncio.wait_for(
                    self._dispatcher.call(endpoint, "tools/list"), timeout=timeout
                )
                tools = self._parse_tools(result)
            except TimeoutError as exc:
                error = ConnectTimeoutError(timeout)
                self._negotiator.abort(endpoint.id, error)
                self._mark_failed(endpoint, error)
                raise error from exc
            except MCPLinkError as exc:
                self._mark_failed(endpoint, exc)
                raise
            span.set_attribute(ATTR_TOOL_COUNT, len(tools))

        if endpoint is not self._endpoint:
            logger.info("Server switched during connect to %s; discarding result", endpoint.id)
            return tools

        self._tools = tools
        self._state = ClientState.CONNECTED
        self._last_error = None
        logger.info(
            "Connected to %s with tools: %s", endpoint.id, ", ".join(t.name for t in tools) or "-"
        )
        return list(tools)

    def reset(self) -> None:
        """Forget the session for the selected server without contacting it.

        Raises:
            NoServerSelectedError: If no server is selected.
        """
        endpoint = self._require_endpoint()
        self._negotiator.reset(endpoint.id)
        self._tools = []
        self._last_error = None
        self._state = ClientState.DISCONNECTED

    async def reinitialize(self) -> ReinitializeOutcome:
        """Reset, then connect again; a reconnect failure is reported, not raised."""
        self.reset()
        try:
            tools = await self.connect()
        except MCPLinkError as exc:
            logger.warning("Reset completed but reconnection failed: %s", exc)
            return ReinitializeOutcome(error=str(exc))
        return ReinitializeOutcome(connected=True, tools=tools, session_id=self.session_id)

    async def status(self) -> StatusReport:
        """Report state and session id, probing the server with ``ping``.

        Never raises; a failed probe is reported as ``connected=False``.
        """
        endpoint = self._endpoint
        report = StatusReport(
            state=self._state,
            server_id=endpoint.id if endpoint else None,
            connected=self.connected,
            session_id=self.session_id,
            tool_count=len(self._tools),
            error=self._last_error,
        )
        if endpoint is None or not self.connected:
            return report

        try:
            await asyncio.wait_for(
                self._call(endpoint, "ping"), timeout=self._settings.connect_timeout
            )
        except TimeoutError:
            return self._failed_probe(report, "status probe timed out")
        except MCPLinkError as exc:
            return self._failed_probe(report, str(exc))
        return report

    def _failed_probe(self, report: StatusReport, error: str) -> StatusReport:
        # The probe may have dropped the session; report the state it left.
        return report.model_copy(
            update={
                "state": self._state,
                "connected": False,
                "session_id": self.session_id,
                "tool_count": len(self._tools),
                "error": error,
            }
        )

    # ------------------------------------------------------------------
    # Tools and resources
    # ------------------------------------------------------------------

    async def list_tools(self) -> list[MCPToolDef]:
        """Refresh the tool list, connecting first if needed.

        The cache is replaced only on success.
        """
        if not self.connected:
            return await self.connect()
        endpoint = self._require_endpoint()
        result = await self._call(endpoint, "tools/list")
        tools = self._parse_tools(result)
        if endpoint is self._endpoint:
            self._tools = tools
        return list(tools)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
        """Send ``tools/call`` and return the server's result verbatim.

        Raises:
            NotConnectedError: If the client is not connected.
        """
        endpoint = self._require_connected("call_tool")
        with _tracer.start_as_current_span("mcp.tool_call") as span:
            span.set_attribute(ATTR_SERVER_ID, endpoint.id)
            span.set_attribute(ATTR_TOOL_NAME, name)
            result = await self._call(
                endpoint, "tools/call", {"name": name, "arguments": arguments or {}}
            )
        try:
            return ToolCallResult.model_validate(result)
        except ValidationError as exc:
            raise MalformedJsonError(str(exc)) from exc

    async def list_resources(self) -> list[MCPResource]:
        """Send ``resources/list``.

        Raises:
            NotConnectedError: If the client is not connected.
        """
        endpoint = self._require_connected("list_resources")
        result = await self._call(endpoint, "resources/list")
        raw = cast("list[dict[str, Any]]", result.get("resources", []))
        try:
            return [MCPResource.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise MalformedJsonError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_endpoint(self) -> EndpointDescriptor:
        if self._endpoint is None:
            raise NoServerSelectedError()
        return self._endpoint

    def _require_connected(self, operation: str) -> EndpointDescriptor:
        endpoint = self._require_endpoint()
        if not self.connected:
            raise NotConnectedError(operation)
        return endpoint

    async def _call(
        self, endpoint: EndpointDescriptor, method: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            return await self._dispatcher.call(endpoint, method, params)
        finally:
            self._sync_with_session(endpoint)

    def _sync_with_session(self, endpoint: EndpointDescriptor) -> None:
        """Drop the tool cache once the session has left ``READY``."""
        if endpoint is not self._endpoint or self._state is not ClientState.CONNECTED:
            return
        if self._negotiator.status(endpoint.id) is not SessionStatus.READY:
            self._tools = []
            self._last_error = self._negotiator.last_error(endpoint.id)
            self._state = ClientState.DISCONNECTED
            logger.info("MCP session for %s is no longer ready; disconnected", endpoint.id)

    def _mark_failed(self, endpoint: EndpointDescriptor, error: Exception) -> None:
        if endpoint is not self._endpoint:
            return
        self._state = ClientState.FAILED
        self._last_error = str(error)
        if self._negotiator.status(endpoint.id) is not SessionStatus.READY:
            self._tools = []
        logger.warning("Failed to connect to MCP server %s: %s", endpoint.id, error)

    def _drop_session(self) -> None:
        if self._endpoint is not None:
            self._negotiator.reset(self._endpoint.id)
        self._tools = []
        self._last_error = None

    @staticmethod
    def _parse_tools(result: dict[str, Any]) -> list[MCPToolDef]:
        raw_tools = cast("list[dict[str, Any]]", result.get("tools", []))
        try:
            return [MCPToolDef.model_validate(raw) for raw in raw_tools]
        except ValidationError as exc:
            raise MalformedJsonError(str(exc)) from exc
