"""
Logging configuration for the command line.

Library modules only create loggers; handlers are installed here, once, by
the CLI.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """
    Install a single rich handler on the root logger.

    Args:
        verbose: Log at DEBUG instead of INFO
        console: Console to write to (default: stderr)
    """
    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
