"""Logging for ancv.

All modules log under the ``ancv`` logger tree. The root ``ancv`` logger is
configured once at import from ``LOG_LEVEL`` and ``LOG_FILE``, and again by
the CLI when ``--debug`` is given.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "ancv"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, value.upper(), logging.INFO)


def setup_logging(
    log_level: str | int = logging.INFO,
    log_file: Path | str | None = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """(Re)configure the ``ancv`` logger.

    Existing handlers are replaced, so calling this twice does not duplicate
    output.

    Args:
        log_level: Level name such as ``"DEBUG"`` or a ``logging`` constant.
        log_file: Rotating log file; its directory is created if missing.
        log_to_console: Also log to stderr.

    Returns:
        The ``ancv`` logger.
    """
    level = _level(log_level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = []
    if log_to_console:
        handlers.append(logging.StreamHandler())
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def setup_logging_from_env(debug: bool = False) -> logging.Logger:
    """Configure logging from ``LOG_LEVEL`` and ``LOG_FILE``.

    Args:
        debug: Force DEBUG level regardless of ``LOG_LEVEL``.
    """
    level = "DEBUG" if debug else os.getenv("LOG_LEVEL", "INFO")
    return setup_logging(log_level=level, log_file=os.getenv("LOG_FILE") or None)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``ancv.<name>``, or the ``ancv`` logger itself."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


setup_logging_from_env()
