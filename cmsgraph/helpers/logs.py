"""Logging setup.

Modules log through ``logging.getLogger(__name__)``; this module only wires
the ``cmsgraph`` logger to a rich handler on stderr, leaving stdout free for
the MCP stdio transport.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cmsgraph"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a ``RichHandler`` to the package logger (once) and set its level."""
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
