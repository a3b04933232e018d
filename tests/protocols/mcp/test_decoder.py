"""Tests for the JSON / SSE response decoder."""

import json

import pytest

from mcplink.errors import MalformedJsonError, MalformedStreamError
from mcplink.protocols.mcp.decoder import BodyFormat, decode


def _sse_wrap(body: str) -> str:
    return f"event: message\ndata: {body}\n\n"


class TestBodyFormat:
    def test_event_stream(self) -> None:
        assert BodyFormat.from_content_type("text/event-stream") is BodyFormat.EVENT_STREAM

    def test_event_stream_with_params(self) -> None:
        fmt = BodyFormat.from_content_type("Text/Event-Stream; charset=utf-8")
        assert fmt is BodyFormat.EVENT_STREAM

    def test_json_and_missing(self) -> None:
        assert BodyFormat.from_content_type("application/json") is BodyFormat.JSON
        assert BodyFormat.from_content_type(None) is BodyFormat.JSON
        assert BodyFormat.from_content_type("") is BodyFormat.JSON


class TestDecodeJson:
    def test_result(self) -> None:
        env = decode('{"jsonrpc":"2.0","id":7,"result":{"tools":[]}}', "application/json")
        assert env.id == 7
        assert env.result == {"tools": []}
        assert env.error is None

    def test_error_without_id(self) -> None:
        env = decode('{"error":{"code":-32601,"message":"Method not found"}}', "application/json")
        assert env.error is not None
        assert env.error.code == -32601
        assert env.error.message == "Method not found"
        assert env.id is None

    def test_invalid_json(self) -> None:
        with pytest.raises(MalformedJsonError):
            decode("<html>oops</html>", "application/json")

    def test_non_object(self) -> None:
        with pytest.raises(MalformedJsonError, match="JSON object"):
            decode("[1, 2]", "application/json")

    def test_both_result_and_error(self) -> None:
        body = '{"id":1,"result":{},"error":{"code":1,"message":"x"}}'
        with pytest.raises(MalformedJsonError):
            decode(body, "application/json")

    def test_neither_result_nor_error(self) -> None:
        with pytest.raises(MalformedJsonError):
            decode('{"jsonrpc":"2.0","id":1}', "application/json")

    def test_sse_body_declared_as_json_is_malformed(self) -> None:
        with pytest.raises(MalformedJsonError):
            decode(_sse_wrap('{"id":1,"result":{}}'), "application/json")


class TestDecodeEventStream:
    def test_initialize_scenario(self) -> None:
        body = 'event: message\ndata: {"jsonrpc":"2.0","id":0,"result":{}}\n'
        env = decode(body, "text/event-stream")
        assert env.id == 0
        assert env.result == {}

    def test_first_data_line_wins(self) -> None:
        body = 'data: {"id":1,"result":{"n":1}}\ndata: {"id":2,"result":{"n":2}}\n'
        assert decode(body, "text/event-stream").result == {"n": 1}

    def test_crlf_line_endings(self) -> None:
        body = 'event: message\r\ndata: {"id":3,"result":{"ok":true}}\r\n\r\n'
        assert decode(body, "text/event-stream").result == {"ok": True}

    def test_missing_data_line(self) -> None:
        with pytest.raises(MalformedStreamError):
            decode("event: message\n\n", "text/event-stream")

    def test_data_without_space_is_not_matched(self) -> None:
        with pytest.raises(MalformedStreamError):
            decode('data:{"id":1,"result":{}}\n', "text/event-stream")

    def test_bad_json_in_data_line(self) -> None:
        with pytest.raises(MalformedJsonError):
            decode("data: {not json}\n", "text/event-stream")


class TestFormatAgnostic:
    @pytest.mark.parametrize(
        "payload",
        [
            {"jsonrpc": "2.0", "id": 1, "result": {"tools": [{"name": "a"}]}},
            {"jsonrpc": "2.0", "id": "req-9", "error": {"code": -32000, "message": "boom"}},
            {"jsonrpc": "2.0", "id": 0, "result": {}},
        ],
    )
    def test_same_envelope_either_way(self, payload: dict) -> None:
        body = json.dumps(payload)
        assert decode(body, "application/json") == decode(_sse_wrap(body), "text/event-stream")
