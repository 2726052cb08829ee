"""Log utilities."""

import logging

from rich.logging import RichHandler

PACKAGE_LOGGER = "ai_message_gateway"
DEFAULT_LEVEL = logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Retrieve logger with the provided name."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(DEFAULT_LEVEL)

    logger = logging.getLogger(name)
    logger.handlers = [RichHandler(show_path=False)]
    logger.propagate = False
    return logger


def set_level(level: str) -> None:
    """Apply a log level to every logger of this package."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.getLogger(PACKAGE_LOGGER).setLevel(numeric)
