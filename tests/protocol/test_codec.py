"""Tests for the JSON-RPC message codec."""

from __future__ import annotations

import json

import pytest

from mcpserve.protocol import codec
from mcpserve.protocol.errors import INVALID_REQUEST, PARSE_ERROR, MalformedMessageError
from mcpserve.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
)


class TestDecode:
    def test_request(self) -> None:
        message = codec.decode(b'{"jsonrpc":"2.0","id":7,"method":"tools/list"}')
        assert isinstance(message, JsonRpcRequest)
        assert message.id == 7
        assert message.method == "tools/list"
        assert message.params is None

    def test_string_id_is_kept_as_string(self) -> None:
        message = codec.decode('{"jsonrpc":"2.0","id":"7","method":"ping"}')
        assert isinstance(message, JsonRpcRequest)
        assert message.id == "7"

    def test_notification_has_no_id(self) -> None:
        message = codec.decode('{"jsonrpc":"2.0","method":"notifications/initialized"}')
        assert isinstance(message, JsonRpcNotification)

    def test_response(self) -> None:
        message = codec.decode('{"jsonrpc":"2.0","id":1,"result":{"ok":true}}')
        assert isinstance(message, JsonRpcResponse)
        assert message.result == {"ok": True}

    def test_error_response(self) -> None:
        message = codec.decode('{"jsonrpc":"2.0","id":1,"error":{"code":-1,"message":"x"}}')
        assert isinstance(message, JsonRpcResponse)
        assert message.is_error

    def test_params_object(self) -> None:
        message = codec.decode(
            '{"jsonrpc":"2.0","id":1,"method":"tools/call","params":{"name":"echo"}}'
        )
        assert isinstance(message, JsonRpcRequest)
        assert message.params == {"name": "echo"}


class TestDecodeErrors:
    def test_invalid_json_is_parse_error_without_id(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode(b"{not json")
        assert info.value.code == PARSE_ERROR
        assert info.value.request_id is None

    def test_invalid_utf8(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode(b"\xff\xfe")
        assert info.value.code == PARSE_ERROR

    def test_deep_nesting_is_parse_error(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode(b"[" * 200000)
        assert info.value.code == PARSE_ERROR
        assert info.value.request_id is None

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_constants_are_parse_errors(self, constant: str) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode(f'{{"jsonrpc":"2.0","id":1,"method":"ping","params":{{"x":{constant}}}}}')
        assert info.value.code == PARSE_ERROR

    def test_missing_jsonrpc_recovers_id(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode('{"id":3,"method":"ping"}')
        assert info.value.code == INVALID_REQUEST
        assert info.value.request_id == 3

    def test_wrong_jsonrpc_version(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode('{"jsonrpc":"1.0","id":"a","method":"ping"}')
        assert info.value.request_id == "a"

    @pytest.mark.parametrize("bad_id", ["true", "1.5", "[1]", '{"a":1}'])
    def test_wrong_id_type_is_unrecoverable(self, bad_id: str) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode(f'{{"jsonrpc":"2.0","id":{bad_id},"method":"ping"}}')
        assert info.value.request_id is None

    def test_request_without_method(self) -> None:
        with pytest.raises(MalformedMessageError, match="no 'method'") as info:
            codec.decode('{"jsonrpc":"2.0","id":4}')
        assert info.value.request_id == 4

    def test_non_string_method(self) -> None:
        with pytest.raises(MalformedMessageError) as info:
            codec.decode('{"jsonrpc":"2.0","id":5,"method":42}')
        assert info.value.request_id == 5

    def test_params_must_be_object(self) -> None:
        with pytest.raises(MalformedMessageError, match="params") as info:
            codec.decode('{"jsonrpc":"2.0","id":6,"method":"tools/call","params":[1,2]}')
        assert info.value.request_id == 6

    def test_batch_rejected(self) -> None:
        with pytest.raises(MalformedMessageError, match="Batch"):
            codec.decode('[{"jsonrpc":"2.0","id":1,"method":"ping"}]')

    def test_scalar_rejected(self) -> None:
        with pytest.raises(MalformedMessageError):
            codec.decode("42")

    def test_response_with_result_and_error(self) -> None:
        with pytest.raises(MalformedMessageError):
            codec.decode('{"jsonrpc":"2.0","id":1,"result":{},"error":{"code":1,"message":"x"}}')


class TestEncode:
    def test_single_line(self) -> None:
        data = codec.encode(codec.result_response(1, {"text": "a\nb"}))
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert json.loads(data) == {"jsonrpc": "2.0", "id": 1, "result": {"text": "a\nb"}}

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_floats_are_refused(self, value: float) -> None:
        with pytest.raises(ValueError):
            codec.encode(codec.result_response(1, {"sum": value}))

    def test_error_response_shape(self) -> None:
        data = codec.encode(codec.error_response(2, JsonRpcError(code=-32601, message="nope")))
        assert json.loads(data) == {
            "jsonrpc": "2.0",
            "id": 2,
            "error": {"code": -32601, "message": "nope"},
        }

    def test_error_response_without_id_keeps_null(self) -> None:
        data = codec.encode(codec.error_response(None, JsonRpcError(code=-32700, message="x")))
        assert json.loads(data)["id"] is None

    def test_error_data_is_included(self) -> None:
        error = JsonRpcError(code=-32602, message="bad", data={"supported": ["2025-06-18"]})
        data = json.loads(codec.encode(codec.error_response(1, error)))
        assert data["error"]["data"] == {"supported": ["2025-06-18"]}

    def test_notification_without_params(self) -> None:
        data = json.loads(codec.encode(codec.notification("notifications/tools/list_changed")))
        assert data == {"jsonrpc": "2.0", "method": "notifications/tools/list_changed"}

    def test_nulls_inside_results_survive(self) -> None:
        data = json.loads(codec.encode(codec.result_response(1, {"value": None})))
        assert data["result"] == {"value": None}

    def test_non_ascii_passes_through(self) -> None:
        data = codec.encode(codec.result_response(1, {"text": "héllo"}))
        assert "héllo" in data.decode("utf-8")

    def test_decode_accepts_encoded_request(self) -> None:
        request = JsonRpcRequest(id="x", method="tools/call", params={"name": "echo"})
        assert codec.decode(codec.encode(request)) == request
