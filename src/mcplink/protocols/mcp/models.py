"""MCP models — JSON-RPC 2.0 envelopes and the tool/resource payloads.

Only the subset of the Model Context Protocol needed for the handshake,
tool discovery (``tools/list``), tool execution (``tools/call``) and
resource listing (``resources/list``) is modelled here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: str = "2.0"
    id: int | str
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (no ``id``, no response expected)."""

    jsonrpc: str = "2.0"
    method: str
    params: dict[str, Any] | None = None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    Carries exactly one of ``result`` or ``error``.  Some servers omit
    ``jsonrpc`` and ``id`` on error replies, so both are optional.
    """

    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> JsonRpcResponse:
        if (self.result is None) == (self.error is None):
            msg = "response must carry exactly one of 'result' or 'error'"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class MCPToolDef(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


class ContentItem(BaseModel):
    """One element of a tool result's ``content`` sequence.

    Only ``type`` is interpreted; everything else is passed through.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    text: str | None = None
    data: Any = None


class ToolCallResult(BaseModel):
    """Result of ``tools/call``, passed through verbatim from the server."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool | None = Field(default=None, alias="isError")

    def text(self) -> str:
        """Join the ``text`` content items, in order."""
        return "\n".join(item.text for item in self.content if item.type == "text" and item.text)


class MCPResource(BaseModel):
    """A resource descriptor as returned by ``resources/list``."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str
    name: str
    description: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
