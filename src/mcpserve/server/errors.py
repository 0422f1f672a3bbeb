"""Error types for the session and tool-invocation layers.

Tool invocation errors never become JSON-RPC errors: the registry turns them
into an error-flagged :class:`~mcpserve.server.registry.ToolInvocationResult`.
"""

from __future__ import annotations

from typing import Any


class SessionError(Exception):
    """Base error for session lifecycle failures."""


class SessionClosedError(SessionError):
    """A message arrived after the session reached ``CLOSED``."""

    def __init__(self, method: str = "") -> None:
        self.method = method
        super().__init__("Session is closed" + (f", dropping {method}" if method else ""))


class ToolInvocationError(Exception):
    """Base error for failures reported inside a ``tools/call`` result.

    ``code`` is the symbolic name placed in the result's error descriptor.
    """

    code = "ToolInvocationError"

    def __init__(self, name: str, message: str, detail: Any = None) -> None:
        self.name = name
        self.message = message
        self.detail = detail
        super().__init__(message)


class UnknownToolError(ToolInvocationError):
    code = "UnknownToolError"

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Unknown tool: {name}")


class SchemaValidationError(ToolInvocationError):
    code = "SchemaValidationError"

    def __init__(self, name: str, errors: list[str]) -> None:
        self.errors = errors
        summary = "; ".join(errors) if errors else "invalid arguments"
        super().__init__(name, f"Invalid arguments for tool {name}: {summary}", detail=errors)


class ToolExecutionError(ToolInvocationError):
    code = "ToolExecutionError"

    def __init__(self, name: str, detail: str = "") -> None:
        super().__init__(
            name,
            f"Tool execution failed: {name}" + (f": {detail}" if detail else ""),
            detail=detail or None,
        )


class ToolTimeoutError(ToolInvocationError):
    code = "ToolTimeoutError"

    def __init__(self, name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(name, f"Tool {name} timed out after {timeout}s", detail={"timeout": timeout})
