"""``mcpserve tools`` — inspect the tools a server would expose."""

from __future__ import annotations

import json
import sys

import click
from rich.markup import escape

from mcpserve.cli_commands._output import console, print_tools_table


@click.group()
def tools() -> None:
    """Inspect registered tools."""


@tools.command("list")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file.",
)
@click.option("--json", "as_json", is_flag=True, help="Output the tools/list payload as JSON.")
def list_tools(config_path: str | None, as_json: bool) -> None:
    """List the tools the server would advertise in ``tools/list``."""
    from mcpserve.config import ConfigError, load_settings
    from mcpserve.tools import build_registry

    try:
        registry = build_registry(load_settings(config_path))
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(1)

    descriptors = registry.list()

    if as_json:
        click.echo(json.dumps({"tools": [d.to_wire() for d in descriptors]}, indent=2))
        return

    if not descriptors:
        console.print("[yellow]No tools registered.[/yellow]")
        return

    print_tools_table(descriptors)
