"""``mcpserve serve`` — run the MCP server over stdio."""

from __future__ import annotations

import sys

import click
from rich.markup import escape

from mcpserve.cli_commands._output import console


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Settings YAML file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.option("--telemetry", is_flag=True, help="Enable telemetry.")
def serve(config_path: str | None, log_level: str | None, telemetry: bool) -> None:
    """Serve tools over stdin/stdout until the client disconnects."""
    from mcpserve.config import ConfigError, load_settings
    from mcpserve.server.server import MCPServer
    from mcpserve.tools import build_registry
    from mcpserve.utils.logs import configure_logging
    from mcpserve.utils.telemetry import configure_telemetry

    try:
        settings = load_settings(config_path)
        if log_level:
            settings.log_level = log_level.upper()  # type: ignore[assignment]
        if telemetry:
            settings.telemetry.enabled = True

        configure_logging(settings.log_level)
        if settings.telemetry.enabled:
            configure_telemetry(
                service_name=settings.name,
                export_to_console=settings.telemetry.export_to_console,
                otlp_endpoint=settings.telemetry.otlp_endpoint,
            )

        registry = build_registry(settings)
    except (ConfigError, ImportError) as exc:
        console.print(f"[red]Startup error:[/red] {escape(str(exc))}")
        sys.exit(1)

    try:
        MCPServer(registry, settings=settings).run_stdio()
    except KeyboardInterrupt:
        pass
