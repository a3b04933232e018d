"""MCP protocol — session negotiation, dispatch, and the client facade."""

from mcplink.protocols.mcp.client import ClientState, MCPClient, ReinitializeOutcome, StatusReport
from mcplink.protocols.mcp.decoder import BodyFormat, decode
from mcplink.protocols.mcp.dispatcher import RpcDispatcher
from mcplink.protocols.mcp.models import (
    ContentItem,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MCPResource,
    MCPToolDef,
    ToolCallResult,
)
from mcplink.protocols.mcp.session import SessionNegotiator, SessionState, SessionStatus
from mcplink.protocols.mcp.transport import HttpTransport, MCPTransport, build_headers

__all__ = [
    "BodyFormat",
    "ClientState",
    "ContentItem",
    "HttpTransport",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPClient",
    "MCPResource",
    "MCPToolDef",
    "MCPTransport",
    "ReinitializeOutcome",
    "RpcDispatcher",
    "SessionNegotiator",
    "SessionState",
    "SessionStatus",
    "StatusReport",
    "ToolCallResult",
    "build_headers",
    "decode",
]
