"""Centralised logging helpers for the lexicon generator."""

from __future__ import annotations

import logging
from typing import Dict, Union

_LOGGER_CACHE: Dict[str, logging.Logger] = {}

_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name: str = "lexgen") -> logging.Logger:
    """Return a cached :class:`logging.Logger` instance."""

    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]


def resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return _LEVEL_MAP.get(level.lower(), logging.INFO)


def configure_logging(level: Union[str, int] = "INFO") -> logging.Logger:
    """
    Install a console handler on the ``lexgen`` logger.

    Calling this more than once only updates the level.
    """

    logger = get_logger("lexgen")
    logger.setLevel(resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        # Prevent propagation to root logger to avoid duplicate messages
        logger.propagate = False
    return logger
