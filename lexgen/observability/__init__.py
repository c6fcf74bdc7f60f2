"""Logging helpers for lexgen."""

from .logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
