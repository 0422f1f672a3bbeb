"""Tests for load_tool_modules and build_registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mcpserve.config import ConfigError, ServerSettings
from mcpserve.server.registry import ToolRegistry
from mcpserve.tools import build_registry, load_tool_modules

if TYPE_CHECKING:
    from pathlib import Path

_TOOL_MODULE = '''\
def register(registry):
    @registry.tool(description="Shout the text.")
    def shout(text: str) -> str:
        return text.upper()

NOT_CALLABLE = 42
'''


@pytest.fixture
def tool_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, request: pytest.FixtureRequest) -> str:
    name = f"user_tools_{request.node.name.replace('[', '_').replace(']', '_').replace('-', '_')}"
    (tmp_path / f"{name}.py").write_text(_TOOL_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return name


class TestLoadToolModules:
    async def test_registers_tools(self, tool_module: str) -> None:
        registry = ToolRegistry()
        load_tool_modules(registry, [f"{tool_module}:register"])

        assert registry.names() == ["shout"]
        result = await registry.invoke("shout", {"text": "hi"})
        assert result.content[0].text == "HI"  # type: ignore[union-attr]

    def test_malformed_spec(self) -> None:
        with pytest.raises(ConfigError, match="Invalid tool module spec"):
            load_tool_modules(ToolRegistry(), ["missing_colon"])

    def test_import_failure(self) -> None:
        with pytest.raises(ConfigError, match="Cannot import"):
            load_tool_modules(ToolRegistry(), ["definitely_not_a_module_xyz:register"])

    def test_not_callable(self, tool_module: str) -> None:
        with pytest.raises(ConfigError, match="does not name a callable"):
            load_tool_modules(ToolRegistry(), [f"{tool_module}:NOT_CALLABLE"])

    def test_missing_attribute(self, tool_module: str) -> None:
        with pytest.raises(ConfigError, match="does not name a callable"):
            load_tool_modules(ToolRegistry(), [f"{tool_module}:nope"])


class TestBuildRegistry:
    def test_builtins_by_default(self) -> None:
        registry = build_registry(ServerSettings())
        assert registry.names() == ["echo", "add"]

    def test_builtins_disabled(self) -> None:
        registry = build_registry(ServerSettings(builtin_tools=False))
        assert len(registry) == 0

    def test_user_modules_after_builtins(self, tool_module: str) -> None:
        registry = build_registry(ServerSettings(tool_modules=[f"{tool_module}:register"]))
        assert registry.names() == ["echo", "add", "shout"]

    def test_timeout_applied(self) -> None:
        registry = build_registry(ServerSettings(tool_timeout=1.5))
        assert registry.timeout == 1.5
