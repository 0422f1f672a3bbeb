"""Server layer — session lifecycle, tool registry, dispatcher, and the server loop."""

from mcpserve.server.dispatcher import Dispatcher
from mcpserve.server.errors import (
    SchemaValidationError,
    SessionClosedError,
    ToolExecutionError,
    ToolInvocationError,
    ToolTimeoutError,
    UnknownToolError,
)
from mcpserve.server.registry import (
    DataContent,
    ResourceLink,
    TextContent,
    ToolDescriptor,
    ToolInvocationResult,
    ToolRegistry,
)
from mcpserve.server.server import MCPServer
from mcpserve.server.session import Session, SessionState

__all__ = [
    "DataContent",
    "Dispatcher",
    "MCPServer",
    "ResourceLink",
    "SchemaValidationError",
    "Session",
    "SessionClosedError",
    "SessionState",
    "TextContent",
    "ToolDescriptor",
    "ToolExecutionError",
    "ToolInvocationError",
    "ToolInvocationResult",
    "ToolRegistry",
    "ToolTimeoutError",
    "UnknownToolError",
]
