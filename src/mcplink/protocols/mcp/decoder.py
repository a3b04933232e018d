"""Response decoder — one JSON-RPC envelope out of a JSON or SSE body.

The same endpoint may answer with ``application/json`` on one call and
``text/event-stream`` on the next, so the branch is chosen from the
response's declared content type on every call.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import ValidationError

from mcplink.errors import MalformedJsonError, MalformedStreamError
from mcplink.protocols.mcp.models import JsonRpcResponse

EVENT_STREAM = "text/event-stream"
_DATA_PREFIX = "data: "


class BodyFormat(str, Enum):
    """Wire format of a response body."""

    JSON = "json"
    EVENT_STREAM = "event_stream"

    @classmethod
    def from_content_type(cls, content_type: str | None) -> BodyFormat:
        if content_type and EVENT_STREAM in content_type.lower():
            return cls.EVENT_STREAM
        return cls.JSON


def decode(raw_body: str, content_type: str | None) -> JsonRpcResponse:
    """Decode *raw_body* into a :class:`JsonRpcResponse`.

    Raises:
        MalformedStreamError: An event stream without a ``data:`` line.
        MalformedJsonError: The payload is not JSON or not a valid envelope.
    """
    fmt = BodyFormat.from_content_type(content_type)
    payload = _extract_event_data(raw_body) if fmt is BodyFormat.EVENT_STREAM else raw_body
    return _parse_envelope(payload)


def _extract_event_data(raw_body: str) -> str:
    """Return the payload of the first ``data:`` line of an SSE body."""
    for line in raw_body.splitlines():
        if line.startswith(_DATA_PREFIX):
            return line[len(_DATA_PREFIX):]
    raise MalformedStreamError()


def _parse_envelope(payload: str) -> JsonRpcResponse:
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedJsonError(str(exc)) from exc

    if not isinstance(data, dict):
        raise MalformedJsonError("expected a JSON object")

    try:
        return JsonRpcResponse.model_validate(data)
    except ValidationError as exc:
        raise MalformedJsonError(str(exc)) from exc
