"""mcpserve — a Model Context Protocol tool server over stdio."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcpserve.server.registry import ToolRegistry as ToolRegistry
    from mcpserve.server.server import MCPServer as MCPServer

_SERVER_EXPORTS = {
    "MCPServer": "mcpserve.server.server",
    "ToolRegistry": "mcpserve.server.registry",
}


def __getattr__(name: str) -> object:
    module_path = _SERVER_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcpserve' has no attribute {name!r}")
