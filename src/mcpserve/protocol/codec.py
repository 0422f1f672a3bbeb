"""Message codec — newline-delimited JSON-RPC 2.0 framing.

``decode`` turns one inbound frame into a typed :data:`Message`;
``encode`` turns an outbound message into exactly one line of bytes.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from mcpserve.protocol.errors import PARSE_ERROR, MalformedMessageError
from mcpserve.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    RequestId,
)


def decode(raw: bytes | str) -> Message:
    """Parse one frame into a request, notification, or response.

    Raises:
        MalformedMessageError: The frame is not valid JSON-RPC 2.0.  The
            error's ``request_id`` is set when the id was recoverable.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        data: Any = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        # ValueError covers UnicodeDecodeError, JSONDecodeError and NaN/Infinity.
        raise MalformedMessageError(f"Parse error: {exc}", code=PARSE_ERROR) from exc

    if isinstance(data, list):
        raise MalformedMessageError("Batch messages are not supported")
    if not isinstance(data, dict):
        raise MalformedMessageError("Message must be a JSON object")

    request_id = _recover_id(data)

    if data.get("jsonrpc") != "2.0":
        raise MalformedMessageError("Missing or invalid 'jsonrpc' member", request_id=request_id)

    if "id" in data and data["id"] is not None and request_id is None:
        raise MalformedMessageError("Request id must be a string or an integer")

    if "method" in data:
        return _decode_call(data, request_id)

    if "result" in data or "error" in data:
        return _decode_response(data, request_id)

    raise MalformedMessageError("Message has no 'method'", request_id=request_id)


def encode(message: Message) -> bytes:
    """Serialize *message* as one compact JSON line."""
    data = _to_wire(message)
    text = json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return (text + "\n").encode("utf-8")


def result_response(request_id: RequestId, result: dict[str, Any]) -> JsonRpcResponse:
    return JsonRpcResponse(id=request_id, result=result)


def error_response(request_id: RequestId | None, error: JsonRpcError) -> JsonRpcResponse:
    return JsonRpcResponse(id=request_id, error=error)


def notification(method: str, params: dict[str, Any] | None = None) -> JsonRpcNotification:
    return JsonRpcNotification(method=method, params=params)


def _to_wire(message: Message) -> dict[str, Any]:
    # Payload dicts are emitted verbatim so that explicit nulls inside results survive.
    data: dict[str, Any] = {"jsonrpc": "2.0"}
    if isinstance(message, JsonRpcResponse):
        data["id"] = message.id
        if message.error is not None:
            error: dict[str, Any] = {"code": message.error.code, "message": message.error.message}
            if message.error.data is not None:
                error["data"] = message.error.data
            data["error"] = error
        else:
            data["result"] = message.result if message.result is not None else {}
        return data

    if isinstance(message, JsonRpcRequest):
        data["id"] = message.id
    data["method"] = message.method
    if message.params is not None:
        data["params"] = message.params
    return data


def _reject_constant(name: str) -> Any:
    msg = f"{name} is not valid JSON"
    raise ValueError(msg)


def _recover_id(data: dict[str, Any]) -> RequestId | None:
    value = data.get("id")
    # bool is an int subclass but never a valid id
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, str)):
        return value
    return None


def _decode_call(data: dict[str, Any], request_id: RequestId | None) -> Message:
    method = data["method"]
    if not isinstance(method, str) or not method:
        raise MalformedMessageError("'method' must be a non-empty string", request_id=request_id)

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise MalformedMessageError("'params' must be an object", request_id=request_id)

    if request_id is None:
        return JsonRpcNotification(method=method, params=params)
    return JsonRpcRequest(id=request_id, method=method, params=params)


def _decode_response(data: dict[str, Any], request_id: RequestId | None) -> JsonRpcResponse:
    if "result" in data and "error" in data:
        raise MalformedMessageError("Response carries both 'result' and 'error'")
    try:
        return JsonRpcResponse.model_validate(
            {"id": request_id, "result": data.get("result"), "error": data.get("error")}
        )
    except ValidationError as exc:
        raise MalformedMessageError(f"Invalid response: {exc.error_count()} error(s)") from exc
