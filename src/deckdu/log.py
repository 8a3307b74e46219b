"""Logging setup for deckdu.

Components log through children of the ``deckdu`` logger. The CLI calls
``setup_logging`` once to attach a rich handler writing to stderr.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("deckdu")


def setup_logging(*, verbose: bool = False, console: Optional[Console] = None) -> None:
    """Attach a stderr handler and set the level from verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a child of the deckdu logger."""
    return logger.getChild(name)
