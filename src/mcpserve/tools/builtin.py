"""Built-in tools shipped with ``mcpserve``."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcpserve.server.registry import ToolRegistry


def register_builtin_tools(registry: ToolRegistry) -> None:
    """Register ``echo`` and ``add`` on *registry*."""

    @registry.tool(
        title="Echo",
        description="Return the given text unchanged.",
        input_schema={
            "type": "object",
            "properties": {"text": {"type": "string", "description": "Text to echo back."}},
            "required": ["text"],
            "additionalProperties": False,
        },
        annotations={"readOnlyHint": True, "idempotentHint": True},
    )
    def echo(text: str) -> str:
        return text

    @registry.tool(
        title="Add",
        description="Add two numbers and return the sum as structured content.",
        annotations={"readOnlyHint": True, "idempotentHint": True},
    )
    def add(a: float, b: float) -> dict[str, float]:
        return {"sum": a + b}
