"""Server configuration — settings models and the YAML loader."""

from mcpserve.config.errors import ConfigError
from mcpserve.config.loader import SettingsLoader, load_settings
from mcpserve.config.models import ServerSettings, TelemetrySettings

__all__ = [
    "ConfigError",
    "ServerSettings",
    "SettingsLoader",
    "TelemetrySettings",
    "load_settings",
]
