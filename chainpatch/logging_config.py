"""Logging configuration for hosts that want chainpatch diagnostics on stdout."""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Generator, Optional

from .config import get_settings

SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)

LOGGER_NAME = "chainpatch"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the chainpatch logger.

    Only the package logger is configured; the host's root logger is left alone.

    Args:
        level: Log level override. If not provided, uses the log_level setting
            (CHAINPATCH_LOG_LEVEL), or DEBUG when the debug setting is on.

    Returns:
        The configured package logger
    """
    settings = get_settings()
    level_name = (level or ("DEBUG" if settings.debug else settings.log_level)).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    # Use simple format for INFO+, detailed format with line numbers for DEBUG
    fmt = DETAILED_FORMAT if log_level == logging.DEBUG else SIMPLE_FORMAT

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_chainpatch", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._chainpatch = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(log_level)
    return logger


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Generator[None, None, None]:
    """Context manager for timing operations.

    Args:
        logger: Logger instance to use.
        operation: Name of the operation being timed.
        level: Log level for the timing message (default: DEBUG).

    Example:
        with log_timing(logger, "Chain reset"):
            chain_registry.reset()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(level, "%s completed in %.1fms", operation, duration_ms)
