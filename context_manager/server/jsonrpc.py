"""JSON-RPC 2.0 envelopes for the stdio protocol.

Requests are validated by hand rather than through a model so that the
request ``id`` is echoed back with exactly the type and value it arrived
with (``0``, ``"abc"`` and ``null`` all round-trip unchanged).
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from context_manager.framework.errors import INVALID_REQUEST, JsonRpcError

JSONRPC_VERSION = "2.0"


@dataclass(frozen=True)
class JsonRpcRequest:
    """A structurally valid request.

    Attributes:
        id: Request id as received (number, string or None)
        method: Method name (non-empty string)
        params: Raw params value (shape depends on the method)
        has_id: False for notifications, which carry no ``id`` member
    """

    id: Any
    method: str
    params: Any = None
    has_id: bool = True

    @classmethod
    def from_payload(cls, payload: Any) -> "JsonRpcRequest":
        """
        Validate a decoded JSON value as a request envelope.

        Args:
            payload: Result of ``json.loads`` on one line

        Returns:
            JsonRpcRequest

        Raises:
            JsonRpcError: INVALID_REQUEST if the envelope is malformed
        """
        if not isinstance(payload, dict):
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: message must be a JSON object")

        if payload.get("jsonrpc") != JSONRPC_VERSION:
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

        method = payload.get("method")
        if not isinstance(method, str) or not method:
            raise JsonRpcError(
                INVALID_REQUEST, "Invalid Request: method is required and must be a string"
            )

        return cls(
            id=payload.get("id"),
            method=method,
            params=payload.get("params"),
            has_id="id" in payload,
        )


class JsonRpcErrorObject(BaseModel):
    """The ``error`` member of a response."""

    model_config = ConfigDict(extra="forbid")

    code: int = Field(..., description="JSON-RPC error code")
    message: str = Field(..., description="Short error description")
    data: Any = Field(default=None, description="Optional structured detail")


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    """Build a success response echoing ``request_id``."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, error: JsonRpcError) -> dict[str, Any]:
    """Build an error response echoing ``request_id``."""
    payload = JsonRpcErrorObject(code=error.rpc_code, message=error.message, data=error.data)
    body = payload.model_dump(mode="json")
    if body["data"] is None:
        del body["data"]
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": body}


def request_id_of(payload: Any) -> Any:
    """Best-effort id extraction from a payload that failed validation."""
    if isinstance(payload, dict):
        return payload.get("id")
    return None


def serialize(response: dict[str, Any]) -> str:
    """
    Serialize a response as a single JSON line (without the newline).

    ``json.dumps`` escapes control characters inside strings, so the output
    never contains a raw newline.
    """
    return json.dumps(response, ensure_ascii=False, separators=(",", ":"), default=str)


__all__ = [
    "JSONRPC_VERSION",
    "JsonRpcErrorObject",
    "JsonRpcRequest",
    "error_response",
    "request_id_of",
    "serialize",
    "success_response",
]
