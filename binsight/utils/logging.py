"""Package logger for binsight.

All modules log through children of the ``binsight`` logger obtained with
``get_logger(__name__)``. The package logger carries only a NullHandler, so
records propagate to whatever the host application configured. Standalone
scripts can call ``configure_logging()`` to attach a stderr handler to the
package logger; the root logger is left alone.
"""

import logging
import os
import sys
from typing import Optional, Union

from ..core.errors import ConfigurationError

LOGGER_NAME = "binsight"
LEVEL_ENV_VAR = "BINSIGHT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


class _StderrHandler(logging.StreamHandler):
    """Handler installed by configure_logging, so it can be found again."""

    def __init__(self):
        super().__init__(sys.stderr)
        self.setFormatter(logging.Formatter(LOG_FORMAT))


def _level_number(level: Union[str, int, None]) -> int:
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR) or "INFO"
    if isinstance(level, int):
        return level
    number = logging.getLevelName(str(level).strip().upper())
    if not isinstance(number, int):
        raise ConfigurationError(f"Unknown log level: {level!r}")
    return number


def configure_logging(level: Union[str, int, None] = None, force: bool = False) -> logging.Logger:
    """
    Send binsight log records to stderr.

    Args:
        level: Level name or number. Falls back to the BINSIGHT_LOG_LEVEL
            environment variable, then INFO.
        force: Replace a handler installed by an earlier call instead of
            only updating the level.

    Returns:
        The package logger

    Raises:
        ConfigurationError: If the level name is unknown
    """
    number = _level_number(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(number)

    installed = [h for h in logger.handlers if isinstance(h, _StderrHandler)]
    if installed and not force:
        for handler in installed:
            handler.setLevel(number)
        return logger
    for handler in installed:
        logger.removeHandler(handler)
        handler.close()

    handler = _StderrHandler()
    handler.setLevel(number)
    logger.addHandler(handler)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for ``name``; the package logger when omitted."""
    return logging.getLogger(name or LOGGER_NAME)
