"""Tool sources — built-in tools and user tool modules."""

from mcpserve.tools.builtin import register_builtin_tools
from mcpserve.tools.loader import build_registry, load_tool_modules

__all__ = ["build_registry", "load_tool_modules", "register_builtin_tools"]
