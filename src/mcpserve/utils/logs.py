"""Logging setup for the ``mcpserve`` process.

stdout belongs to the protocol stream, so every log record goes to stderr
through a :class:`rich.logging.RichHandler`.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "mcpserve"


def configure_logging(level: str | int = "INFO", *, console: Console | None = None) -> logging.Logger:
    """Attach a stderr rich handler to the ``mcpserve`` logger.

    Calling it again replaces the previous handler instead of stacking them.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.propagate = False
    return logger
