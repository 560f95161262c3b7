"""
Logging setup for the command-line interface
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "zendesk_export"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    console: Console,
    verbose: bool = False,
    level: str = "INFO",
    file_path: Optional[str] = None,
) -> logging.Logger:
    """
    Route package log records to ``console`` through a RichHandler.

    Calling this again replaces the handlers installed by the previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_zendesk_export", False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console, rich_tracebacks=True, show_path=verbose, markup=False
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    rich_handler._zendesk_export = True  # type: ignore[attr-defined]
    logger.addHandler(rich_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        file_handler._zendesk_export = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if verbose else level.upper())
    return logger
