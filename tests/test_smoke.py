"""Smoke test to verify the project scaffolding works."""

from __future__ import annotations


def test_import() -> None:
    import mcpserve

    assert mcpserve.__version__ == "0.1.0"


def test_cli_entrypoint() -> None:
    from mcpserve.cli import main

    assert callable(main)


def test_package_imports() -> None:
    from mcpserve.config import ServerSettings, SettingsLoader
    from mcpserve.protocol import StdioTransport, decode, encode
    from mcpserve.server import Dispatcher, MCPServer, Session, ToolRegistry
    from mcpserve.tools import build_registry

    assert all(
        obj is not None
        for obj in (
            ServerSettings, SettingsLoader, StdioTransport, decode, encode,
            Dispatcher, MCPServer, Session, ToolRegistry, build_registry,
        )
    )


def test_lazy_import_from_package() -> None:
    import mcpserve
    from mcpserve.server import MCPServer, ToolRegistry

    assert mcpserve.MCPServer is MCPServer
    assert mcpserve.ToolRegistry is ToolRegistry
