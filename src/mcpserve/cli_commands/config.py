"""``mcpserve config`` — show effective settings."""

from __future__ import annotations

import sys

import click
from rich.markup import escape

from mcpserve.cli_commands._output import console


@click.group()
def config() -> None:
    """Inspect server settings."""


@config.command("show")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file.",
)
def show(config_path: str | None) -> None:
    """Print the effective settings as JSON."""
    from mcpserve.config import ConfigError, load_settings

    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(1)

    click.echo(settings.model_dump_json(indent=2))
