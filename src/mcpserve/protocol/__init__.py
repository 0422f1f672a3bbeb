"""Protocol layer — JSON-RPC 2.0 codec, MCP payload models, and transports."""

from mcpserve.protocol.codec import decode, encode
from mcpserve.protocol.errors import (
    FrameTooLargeError,
    MalformedMessageError,
    ProtocolError,
    TransportClosed,
)
from mcpserve.protocol.models import (
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
)
from mcpserve.protocol.transport import MCPTransport, StdioTransport, StreamTransport

__all__ = [
    "FrameTooLargeError",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPTransport",
    "MalformedMessageError",
    "Message",
    "ProtocolError",
    "StdioTransport",
    "StreamTransport",
    "TransportClosed",
    "decode",
    "encode",
]
