"""Shared fixtures: a scriptable MCP endpoint behind ``httpx.MockTransport``."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from mcplink.protocols.mcp.client import MCPClient
from mcplink.protocols.mcp.transport import HttpTransport
from mcplink.registry.config import ClientSettings
from mcplink.registry.models import AuthKind, EndpointDescriptor
from mcplink.registry.registry import ServerRegistry

ALPHA_URL = "http://alpha.test/mcp"
BETA_URL = "http://beta.test/mcp"

Reply = dict[str, Any] | httpx.Response | Callable[[dict[str, Any]], Any]


def _tools_result() -> dict[str, Any]:
    return {
        "tools": [
            {
                "name": "list_projects",
                "description": "List projects",
                "inputSchema": {
                    "type": "object",
                    "properties": {"search": {"type": "string"}},
                },
            },
            {
                "name": "get_issue",
                "description": "Fetch one issue",
                "inputSchema": {
                    "type": "object",
                    "properties": {"iid": {"type": "integer"}},
                    "required": ["iid"],
                },
            },
        ]
    }


class FakeMCPServer:
    """Answers MCP requests from a per-method reply table.

    A reply is an envelope fragment (``{"result": ...}`` or
    ``{"error": ...}``), a ready :class:`httpx.Response`, or a callable
    receiving the decoded request body and returning either of those.
    ``delays[method]`` is a queue of sleeps applied to successive calls.
    """

    def __init__(self) -> None:
        self.session_id: str | None = "abc123"
        self.sse = False
        self.requests: list[dict[str, Any]] = []
        self.request_headers: list[httpx.Headers] = []
        self.urls: list[str] = []
        self.delays: dict[str, list[float]] = {}
        self.replies: dict[str, Reply] = {
            "initialize": {
                "result": {
                    "protocolVersion": "2024-11-05",
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": "fake", "version": "1.0"},
                }
            },
            "notifications/initialized": lambda body: httpx.Response(202),
            "tools/list": {"result": _tools_result()},
            "tools/call": lambda body: {
                "result": {
                    "content": [
                        {"type": "text", "text": f"called {body['params']['name']}"},
                    ]
                }
            },
            "resources/list": {
                "result": {
                    "resources": [
                        {"uri": "file:///README.md", "name": "README", "mimeType": "text/markdown"},
                    ]
                }
            },
            "ping": {"result": {}},
        }

    def count(self, method: str) -> int:
        return sum(1 for body in self.requests if body.get("method") == method)

    def headers_for(self, method: str) -> list[httpx.Headers]:
        return [
            headers
            for body, headers in zip(self.requests, self.request_headers, strict=True)
            if body.get("method") == method
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        body: dict[str, Any] = json.loads(request.content)
        method = body.get("method", "")
        self.requests.append(body)
        self.request_headers.append(request.headers)
        self.urls.append(str(request.url))

        queue = self.delays.get(method)
        if queue:
            await asyncio.sleep(queue.pop(0))

        reply = self.replies.get(method, {"error": {"code": -32601, "message": "Method not found"}})
        if callable(reply):
            reply = reply(body)
        if isinstance(reply, httpx.Response):
            return reply
        return self._envelope_response(method, {"jsonrpc": "2.0", "id": body.get("id"), **reply})

    def _envelope_response(self, method: str, envelope: dict[str, Any]) -> httpx.Response:
        headers: dict[str, str] = {}
        if method == "initialize" and self.session_id:
            headers["mcp-session-id"] = self.session_id
        payload = json.dumps(envelope)
        if self.sse:
            headers["content-type"] = "text/event-stream"
            return httpx.Response(200, content=f"event: message\ndata: {payload}\n\n".encode(), headers=headers)
        headers["content-type"] = "application/json"
        return httpx.Response(200, content=payload.encode(), headers=headers)


@pytest.fixture
def fake_server() -> FakeMCPServer:
    return FakeMCPServer()


@pytest.fixture
async def transport(fake_server: FakeMCPServer) -> AsyncIterator[HttpTransport]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_server))
    yield HttpTransport(http)
    await http.aclose()


@pytest.fixture
def alpha() -> EndpointDescriptor:
    return EndpointDescriptor(
        id="alpha",
        display_name="Alpha",
        url=ALPHA_URL,
        is_builtin=True,
        is_default=True,
    )


@pytest.fixture
def beta() -> EndpointDescriptor:
    return EndpointDescriptor(
        id="beta",
        display_name="Beta",
        url=BETA_URL,
        requires_auth=True,
        auth_kind=AuthKind.BEARER,
        credential="s3cret",
        is_builtin=True,
    )


@pytest.fixture
def registry(alpha: EndpointDescriptor, beta: EndpointDescriptor) -> ServerRegistry:
    return ServerRegistry([alpha, beta])


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(connect_timeout=1.0)


@pytest.fixture
def client(
    registry: ServerRegistry, transport: HttpTransport, settings: ClientSettings
) -> MCPClient:
    return MCPClient(registry, transport=transport, settings=settings)
