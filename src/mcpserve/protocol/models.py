"""MCP models — JSON-RPC 2.0 messages and lifecycle payloads.

Implements the message envelope used by the Model Context Protocol and the
parameter/result shapes of the ``initialize``, ``tools/list``, ``tools/call``
and ``notifications/cancelled`` methods.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

RequestId = int | str

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2025-03-26", "2024-11-05"]

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    method: str
    params: dict[str, Any] | None = None


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (a request without an id)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message.

    ``id`` is ``None`` only for error responses to requests whose id could
    not be read.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId | None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


Message = JsonRpcRequest | JsonRpcNotification | JsonRpcResponse


# ---------------------------------------------------------------------------
# Lifecycle payloads
# ---------------------------------------------------------------------------


class Implementation(BaseModel):
    """Name and version of a protocol participant."""

    name: str
    version: str = ""
    title: str | None = None


class InitializeParams(BaseModel):
    """Parameters of the ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation = Field(alias="clientInfo")


class InitializeResult(BaseModel):
    """Result of a successful ``initialize`` request."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any]
    server_info: Implementation = Field(alias="serverInfo")
    instructions: str | None = None


# ---------------------------------------------------------------------------
# Tool payloads
# ---------------------------------------------------------------------------


class ListToolsParams(BaseModel):
    """Parameters of ``tools/list``."""

    cursor: str | None = None


class CallToolParams(BaseModel):
    """Parameters of ``tools/call``."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class CancelledParams(BaseModel):
    """Parameters of ``notifications/cancelled``."""

    model_config = {"populate_by_name": True}

    request_id: RequestId = Field(alias="requestId")
    reason: str | None = None
