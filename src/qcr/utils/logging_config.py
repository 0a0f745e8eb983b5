"""
Logging setup for the command-line host.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by whoever owns the process.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "WARNING", console: Console | None = None) -> logging.Logger:
    """
    Attach a RichHandler to the ``qcr`` logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        console: Console to write to; stderr when omitted

    Returns:
        The configured ``qcr`` logger
    """
    logger = logging.getLogger("qcr")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    logger.propagate = False
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger
