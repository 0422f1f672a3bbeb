"""Configuration error types."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when server settings or tool modules cannot be loaded."""
