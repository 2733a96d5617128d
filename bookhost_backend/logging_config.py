"""Logging setup for the bookhost service."""
from __future__ import annotations

import logging
from typing import Optional, Union

# Parent of every module logger created with logging.getLogger(__name__).
LOGGER_NAME = "bookhost_backend"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logger: Optional[logging.Logger] = None


def setup_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach a stream handler to the package logger once; later calls only change the level."""
    global _logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if _logger is None:
        logger = logging.getLogger(LOGGER_NAME)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _logger = logger

    _logger.setLevel(level)
    return _logger
