"""Process-wide logging setup."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "glrepo"


def setup_logging(verbosity: int = 0, console: Console | None = None) -> logging.Logger:
    """
    Configure the glrepo logger.

    0 logs at INFO, 1 at DEBUG, 2 or more also lets GitPython's own
    debug output through.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO if verbosity <= 0 else logging.DEBUG)
    logger.propagate = False

    handler = next((h for h in logger.handlers if isinstance(h, RichHandler)), None)
    if handler is None:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    git_logger = logging.getLogger("git")
    if verbosity > 1:
        git_logger.setLevel(logging.DEBUG)
        if handler not in git_logger.handlers:
            git_logger.addHandler(handler)
    else:
        git_logger.setLevel(logging.WARNING)
    return logger
