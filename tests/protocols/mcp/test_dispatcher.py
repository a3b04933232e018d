"""Tests for RpcDispatcher request building and error translation."""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from mcplink.errors import MalformedJsonError, RemoteError, TransportError
from mcplink.protocols.mcp.dispatcher import RpcDispatcher
from mcplink.protocols.mcp.session import SessionNegotiator, SessionStatus
from mcplink.protocols.mcp.transport import HttpTransport
from mcplink.registry.models import AuthKind, EndpointDescriptor
from mcplink.utils.telemetry import ATTR_METHOD, ATTR_SERVER_URL, ATTR_SESSION_ID


@pytest.fixture
def negotiator(transport: HttpTransport) -> SessionNegotiator:
    return SessionNegotiator(transport)


@pytest.fixture
def dispatcher(transport: HttpTransport, negotiator: SessionNegotiator) -> RpcDispatcher:
    return RpcDispatcher(transport, negotiator)


class TestCall:
    async def test_first_call_negotiates(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        result = await dispatcher.call(alpha, "tools/list")

        assert [t["name"] for t in result["tools"]] == ["list_projects", "get_issue"]
        assert [r["method"] for r in fake_server.requests] == [
            "initialize",
            "notifications/initialized",
            "tools/list",
        ]

    async def test_envelope_shape(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        await dispatcher.call(alpha, "tools/call", {"name": "get_issue", "arguments": {"iid": 4}})

        body = fake_server.requests[-1]
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "tools/call"
        assert body["params"] == {"name": "get_issue", "arguments": {"iid": 4}}
        assert isinstance(body["id"], int)

    async def test_ids_increase(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        await dispatcher.call(alpha, "ping")
        await dispatcher.call(alpha, "ping")

        first, second = (r["id"] for r in fake_server.requests if r["method"] == "ping")
        assert second > first

    async def test_headers(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        await dispatcher.call(alpha, "tools/list")

        headers = fake_server.headers_for("tools/list")[0]
        assert headers["content-type"] == "application/json"
        assert headers["accept"] == "application/json, text/event-stream"
        assert headers["mcp-session-id"] == "abc123"
        assert "authorization" not in headers

    async def test_auth_header_attached(
        self, dispatcher: RpcDispatcher, fake_server, beta: EndpointDescriptor
    ) -> None:
        await dispatcher.call(beta, "tools/list")

        for headers in fake_server.request_headers:
            assert headers["authorization"] == "Bearer s3cret"

    async def test_custom_auth_header(
        self, dispatcher: RpcDispatcher, fake_server
    ) -> None:
        endpoint = EndpointDescriptor(
            id="custom",
            display_name="Custom",
            url="http://custom.test/mcp",
            requires_auth=True,
            auth_kind=AuthKind.CUSTOM,
            auth_header="X-Token",
            credential="t0k",
        )
        await dispatcher.call(endpoint, "ping")

        assert fake_server.headers_for("ping")[0]["x-token"] == "t0k"

    async def test_no_session_header_for_stateless_server(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.session_id = None
        await dispatcher.call(alpha, "tools/list")

        assert "mcp-session-id" not in fake_server.headers_for("tools/list")[0]

    async def test_sse_response(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.sse = True
        result = await dispatcher.call(alpha, "tools/list")
        assert len(result["tools"]) == 2

    async def test_mixed_formats_on_one_endpoint(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.replies["initialize"] = lambda body: httpx.Response(
            200,
            content=b'event: message\ndata: {"jsonrpc":"2.0","id":0,"result":{}}\n\n',
            headers={"content-type": "text/event-stream", "mcp-session-id": "abc123"},
        )

        result = await dispatcher.call(alpha, "ping")
        assert result == {}

    async def test_concurrent_calls_share_handshake(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.delays["initialize"] = [0.05]

        await asyncio.gather(dispatcher.call(alpha, "tools/list"), dispatcher.call(alpha, "ping"))

        assert fake_server.count("initialize") == 1
        assert fake_server.count("tools/list") == 1
        assert fake_server.count("ping") == 1

    async def test_request_span_attributes(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        with patch("mcplink.protocols.mcp.dispatcher._tracer") as tracer:
            await dispatcher.call(alpha, "tools/list")

        tracer.start_as_current_span.assert_called_once_with("mcp.request")
        span = tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_any_call(ATTR_SERVER_URL, "http://alpha.test/mcp")
        span.set_attribute.assert_any_call(ATTR_METHOD, "tools/list")
        span.set_attribute.assert_any_call(ATTR_SESSION_ID, "abc123")


class TestErrors:
    async def test_remote_error(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.replies["tools/list"] = {
            "error": {"code": -32601, "message": "Method not found"}
        }

        with pytest.raises(RemoteError) as exc_info:
            await dispatcher.call(alpha, "tools/list")

        assert exc_info.value.code == -32601
        assert exc_info.value.message == "Method not found"

    async def test_http_status(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.replies["tools/list"] = lambda body: httpx.Response(502)

        with pytest.raises(TransportError) as exc_info:
            await dispatcher.call(alpha, "tools/list")
        assert exc_info.value.status == 502

    async def test_malformed_body(
        self, dispatcher: RpcDispatcher, fake_server, alpha: EndpointDescriptor
    ) -> None:
        fake_server.replies["tools/list"] = lambda body: httpx.Response(
            200, content=b"not json", headers={"content-type": "application/json"}
        )

        with pytest.raises(MalformedJsonError):
            await dispatcher.call(alpha, "tools/list")

    async def test_expired_session_is_invalidated(
        self,
        dispatcher: RpcDispatcher,
        negotiator: SessionNegotiator,
        fake_server,
        alpha: EndpointDescriptor,
    ) -> None:
        await dispatcher.call(alpha, "ping")
        fake_server.replies["tools/list"] = lambda body: httpx.Response(404)

        with pytest.raises(TransportError):
            await dispatcher.call(alpha, "tools/list")

        assert negotiator.status("alpha") is SessionStatus.FAILED
        assert negotiator.session_id("alpha") is None

    async def test_other_statuses_keep_session(
        self,
        dispatcher: RpcDispatcher,
        negotiator: SessionNegotiator,
        fake_server,
        alpha: EndpointDescriptor,
    ) -> None:
        fake_server.replies["tools/list"] = lambda body: httpx.Response(500)

        with pytest.raises(TransportError):
            await dispatcher.call(alpha, "tools/list")
        assert negotiator.status("alpha") is SessionStatus.READY
