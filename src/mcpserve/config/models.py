"""Pydantic models for the server settings file consumed by ``mcpserve serve``."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from mcpserve import __version__
from mcpserve.protocol.models import SUPPORTED_PROTOCOL_VERSIONS


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    enabled: bool = False
    export_to_console: bool = True
    otlp_endpoint: str | None = None


class ServerSettings(BaseModel):
    """Top-level server settings parsed from YAML.

    Example YAML::

        name: notes-server
        instructions: Tools for reading the team's notes.
        max_concurrency: 4
        tool_timeout: 30
        tool_modules:
          - notes_tools.register:register
        telemetry:
          enabled: true
          otlp_endpoint: ${OTLP_ENDPOINT}
    """

    name: str = "mcpserve"
    version: str = __version__
    instructions: str | None = None
    protocol_versions: list[str] = Field(
        default_factory=lambda: list(SUPPORTED_PROTOCOL_VERSIONS), min_length=1
    )
    max_concurrency: int = Field(default=8, ge=1)
    tool_timeout: float | None = Field(default=None, gt=0)
    page_size: int | None = Field(default=None, ge=1)
    max_message_bytes: int = Field(default=4 * 1024 * 1024, ge=1024)
    list_changed: bool = True
    builtin_tools: bool = True
    tool_modules: list[str] = []
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @field_validator("tool_modules")
    @classmethod
    def _check_tool_modules(cls, specs: list[str]) -> list[str]:
        for spec in specs:
            module, sep, attr = spec.partition(":")
            if not module or not sep or not attr:
                msg = f"tool module '{spec}' must look like 'package.module:callable'"
                raise ValueError(msg)
        return specs
