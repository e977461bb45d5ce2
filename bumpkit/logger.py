"""Logging setup for bumpkit."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .config import LoggingConfig
from .exceptions import ConfigError

ROOT_LOGGER = "bumpkit"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_DEV_FORMAT = "%(levelname)-7s %(name)s: %(message)s"
_PROD_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Marks handlers installed here so repeated setup replaces only our own.
_HANDLER_ATTR = "_bumpkit_handler"


def resolve_level(name: str) -> int:
    try:
        return _LEVELS[name.strip().lower()]
    except KeyError:
        raise ConfigError(f"unknown log level '{name}'") from None


def setup_logging(
    config: Optional[LoggingConfig] = None, level: Optional[str] = None
) -> logging.Logger:
    """Configure the ``bumpkit`` logger from ``config``.

    ``level`` overrides the configured level (the CLI's ``--debug``).
    Calling this again swaps the previous handler instead of stacking one.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolve_level(level or config.level))

    if config.output == "file":
        handler: logging.Handler = logging.FileHandler(config.file_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    if config.environment == "production":
        handler.setFormatter(logging.Formatter(_PROD_FORMAT, datefmt=_TIME_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(_DEV_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)

    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_ATTR, False):
            logger.removeHandler(existing)
            existing.close()
    logger.addHandler(handler)
    return logger
