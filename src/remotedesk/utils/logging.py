"""Logging setup for the relay process.

One call wires the ``remotedesk`` package logger and uvicorn's own loggers
to the same handlers, so server startup lines, access lines and relay
events share one format and one optional log file.
"""

from __future__ import annotations

import logging
import sys

from remotedesk.config.settings import LoggingConfig

PACKAGE_LOGGER = "remotedesk"

# uvicorn.access is not a child of uvicorn.error, so each is wired directly
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the relay's loggers from ``config``.

    Safe to call more than once: handlers from a previous call are removed
    and closed before the new ones are attached.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers = _build_handlers(config)

    for name in (PACKAGE_LOGGER, *SERVER_LOGGERS):
        logger = logging.getLogger(name)
        _reset(logger)
        logger.setLevel(level)
        if name in SERVER_LOGGERS:
            # uvicorn.error would otherwise also emit through the "uvicorn" handlers
            logger.propagate = False
        for handler in handlers:
            logger.addHandler(handler)

    logging.getLogger(PACKAGE_LOGGER).info("Logging initialized at %s level", config.level)
