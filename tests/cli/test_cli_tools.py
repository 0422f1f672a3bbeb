"""Tests for ``mcpserve tools`` CLI command."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from mcpserve.cli import main

if TYPE_CHECKING:
    from pathlib import Path


class TestToolsList:
    def test_lists_builtin_tools(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list"])

        assert result.exit_code == 0
        assert "Registered Tools" in result.output
        assert "echo" in result.output
        assert "add" in result.output

    def test_json_output(self) -> None:
        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert [tool["name"] for tool in payload["tools"]] == ["echo", "add"]
        assert payload["tools"][0]["inputSchema"]["required"] == ["text"]

    def test_no_tools(self, tmp_path: Path) -> None:
        f = tmp_path / "mcpserve.yaml"
        f.write_text("builtin_tools: false\n")

        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list", "--config", str(f)])

        assert result.exit_code == 0
        assert "No tools registered" in result.output

    def test_config_error(self, tmp_path: Path) -> None:
        f = tmp_path / "mcpserve.yaml"
        f.write_text("tool_modules:\n  - not_a_real_module_abc:register\n")

        runner = CliRunner()
        result = runner.invoke(main, ["tools", "list", "-c", str(f)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
