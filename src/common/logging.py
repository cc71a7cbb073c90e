"""Logging setup for the card pricer entry points."""

from __future__ import annotations

import logging
import os
import sys
from typing import Iterable

from .exceptions import ConfigurationError

LOG_LEVEL_ENV = "CARD_PRICER_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: int | str) -> int:
    """Turn a level name such as ``"debug"`` or a numeric level into an int.

    Raises:
        ConfigurationError: ``level`` names no logging level.
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level {level!r}", {"log_level": level})
    return resolved


def setup_logging(
    level: int | str = logging.INFO,
    module_name: str = "src",
    quiet_loggers: Iterable[str] = (),
) -> logging.Logger:
    """Attach the pricer's stdout handler to ``module_name`` and set its level.

    Library modules only call ``logging.getLogger(__name__)`` and inherit the
    handler from the ``src`` package logger. ``CARD_PRICER_LOG_LEVEL`` in the
    environment overrides ``level``. Calling again re-levels the logger
    without adding a second handler.

    Args:
        level: Level number or name (default INFO).
        module_name: Logger to configure.
        quiet_loggers: Third-party loggers held at WARNING, e.g. ``urllib3``
            retry chatter from the marketplace session.

    Returns:
        Configured logger.
    """
    level = resolve_level(os.getenv(LOG_LEVEL_ENV) or level)
    logger = logging.getLogger(module_name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(level)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
