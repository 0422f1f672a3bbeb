"""Entry-point loading for user-supplied tool modules.

A tool module spec has the form ``"package.module:callable"``; the callable
receives the :class:`~mcpserve.server.registry.ToolRegistry` and registers
whatever it likes on it.
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from mcpserve.config.errors import ConfigError
from mcpserve.tools.builtin import register_builtin_tools

if TYPE_CHECKING:
    from mcpserve.config.models import ServerSettings
    from mcpserve.server.registry import ToolRegistry

logger = logging.getLogger(__name__)


def load_tool_modules(registry: ToolRegistry, specs: list[str]) -> None:
    """Import each ``module:callable`` spec and call it with *registry*.

    Raises:
        ConfigError: A spec is malformed, cannot be imported, or is not callable.
    """
    for spec in specs:
        module_name, _, attr = spec.partition(":")
        if not module_name or not attr:
            raise ConfigError(f"Invalid tool module spec '{spec}'")

        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise ConfigError(f"Cannot import tool module '{module_name}': {exc}") from exc

        register = getattr(module, attr, None)
        if not callable(register):
            raise ConfigError(f"'{spec}' does not name a callable")

        before = len(registry)
        register(registry)
        logger.info("Loaded %s (%d tool(s) added)", spec, len(registry) - before)


def build_registry(settings: ServerSettings) -> ToolRegistry:
    """Create a registry populated according to *settings*."""
    from mcpserve.server.registry import ToolRegistry

    registry = ToolRegistry(timeout=settings.tool_timeout)
    if settings.builtin_tools:
        register_builtin_tools(registry)
    load_tool_modules(registry, settings.tool_modules)
    return registry
