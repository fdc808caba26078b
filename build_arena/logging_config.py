"""
Logging configuration for the build arena.

Sets up loguru with appropriate levels and formatting.
"""

import sys

from loguru import logger
from typing import Any


def setup_logging(level: str = "INFO", debug: bool = False, log_file: str | None = None) -> None:
    """
    Configure loguru logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: If True, enable debug logging and more verbose output
        log_file: Optional path for a rotating file sink
    """
    logger.remove()
    logger.configure(extra={"name": "build_arena"})

    log_level = "DEBUG" if debug else level

    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}:{function}:{line}</cyan> - <level>{message}</level>",
    )

    if log_file:
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )


def get_logger(name: str | None = None) -> Any:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (defaults to "build_arena")

    Returns:
        Logger instance bound to the name
    """
    return logger.bind(name=name or "build_arena")
