"""Logging configuration for the gateway."""

import logging
import sys

LOGGER_NAME = "llmgate"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Set up the gateway logger with a stdout handler and timestamped formatter."""
    logger = logging.getLogger(LOGGER_NAME)
    resolved_level = logging.getLevelName(str(level).upper())
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO
    logger.setLevel(resolved_level)

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    # Propagate to root logger so test capture (caplog) still sees records
    logger.propagate = True

    return logger


# Global logger instance
logger = setup_logging()
