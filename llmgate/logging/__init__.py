"""Logging module for the gateway."""

from .setup import LOG_DATE_FORMAT, LOG_FORMAT, logger, setup_logging

__all__ = [
    "LOG_DATE_FORMAT",
    "LOG_FORMAT",
    "logger",
    "setup_logging",
]
