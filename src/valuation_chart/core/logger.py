"""Structured logging for the valuation chart widget."""

import logging
import sys
from typing import Union

_ROOT = "valuation_chart"
_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
    return level


def get_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Get a configured logger under the ``valuation_chart`` namespace."""
    logger = logging.getLogger(f"{_ROOT}.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.setLevel(_resolve_level(level))
    return logger


def set_level(level: Union[int, str]) -> None:
    """Apply a level (name or number) to every logger created so far."""
    resolved = _resolve_level(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(f"{_ROOT}.") and isinstance(logger, logging.Logger):
            logger.setLevel(resolved)
