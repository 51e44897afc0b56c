"""Logging setup for the TiffLocator package."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from tifflocator.config.models import LoggingSettings

PACKAGE_LOGGER = "tifflocator"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    *,
    console: Console | None = None,
    level_override: str | None = None,
) -> logging.Logger:
    """Attach console and optional file handlers to the package logger.

    Calling this repeatedly replaces previously installed handlers, so CLI
    invocations in the same process do not stack duplicate output.

    Args:
        settings: Logging section of the resolved configuration.
        console: Rich console used for terminal output (stderr by default).
        level_override: Level name that takes precedence over ``settings.level``.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = getattr(logging, (level_override or settings.level).upper(), logging.WARNING)
    logger.setLevel(level)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "PACKAGE_LOGGER"]
