"""Protocol-level error types.

Every :class:`ProtocolError` maps onto a JSON-RPC 2.0 error object that is
sent back to the peer.  Transport failures are a separate family: they never
reach the peer, they end the session.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from mcpserve.protocol.models import JsonRpcError, RequestId

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_NOT_INITIALIZED = -32002
REQUEST_CANCELLED = -32800


class ProtocolError(Exception):
    """Base error for failures reported to the peer as JSON-RPC errors."""

    code: int = INTERNAL_ERROR
    fatal: bool = False

    def __init__(self, message: str, *, data: Any = None, code: int | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    def to_error(self) -> JsonRpcError:
        """Render this error as a JSON-RPC error object."""
        return JsonRpcError(code=self.code, message=self.message, data=self.data)


class MalformedMessageError(ProtocolError):
    """Inbound bytes are not a valid JSON-RPC 2.0 message.

    ``request_id`` is set when an id could still be recovered from the
    payload, in which case the peer gets an error response for it.
    """

    code = INVALID_REQUEST

    def __init__(
        self,
        message: str,
        *,
        request_id: RequestId | None = None,
        code: int | None = None,
    ) -> None:
        self.request_id = request_id
        super().__init__(message, code=code)


class InvalidRequestError(ProtocolError):
    code = INVALID_REQUEST


class MethodNotFoundError(ProtocolError):
    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method not found: {method}", data={"method": method})


class InvalidParamsError(ProtocolError):
    code = INVALID_PARAMS


class InternalError(ProtocolError):
    code = INTERNAL_ERROR


class UnsupportedVersionError(ProtocolError):
    """No protocol version is acceptable to both sides.

    Terminal: the error response is written and the connection closes.
    """

    code = INVALID_PARAMS
    fatal = True

    def __init__(self, requested: str, supported: list[str]) -> None:
        self.requested = requested
        self.supported = list(supported)
        super().__init__(
            "Unsupported protocol version",
            data={"requested": requested, "supported": self.supported},
        )


class NotReadyError(ProtocolError):
    """A request arrived before the initialize handshake completed."""

    code = SERVER_NOT_INITIALIZED

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Server not initialized: cannot handle {method}")


class RequestCancelledError(ProtocolError):
    code = REQUEST_CANCELLED

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__("Request cancelled" + (f": {reason}" if reason else ""))


# ---------------------------------------------------------------------------
# Transport-level signals
# ---------------------------------------------------------------------------


class TransportClosed(Exception):
    """The underlying stream is gone (EOF, I/O error, or closed locally)."""


class FrameTooLargeError(Exception):
    """An inbound frame exceeded the transport's size limit and was discarded."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Inbound message exceeds {limit} bytes")


def describe_validation_error(exc: ValidationError) -> list[str]:
    """Flatten a pydantic error into JSON-safe ``"loc: message"`` strings."""
    details: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        details.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return details
