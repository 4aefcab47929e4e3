"""Logging setup.

Log records go to stderr: when serving over stdio, stdout carries the
protocol stream and must stay clean.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = "WARNING") -> None:
    """Route pop_mcp loggers through a rich handler on stderr.

    Args:
        level: Log level name or number
    """
    if isinstance(level, str):
        level = level.upper()

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger("pop_mcp")
    for existing in list(logger.handlers):
        if isinstance(existing, RichHandler):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
