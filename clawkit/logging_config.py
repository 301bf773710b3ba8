"""Loguru logging setup."""

import os
import sys

from loguru import logger

from clawkit.config.settings import get_settings

LOG_FORMAT = "<level>{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name}:{function}:{line} | {message}</level>"


def setup_logging(level: str | None = None) -> None:
    """Configure the loguru level and stderr sink.

    Level priority: argument, ``CLAWKIT_LOG_LEVEL``, ``LOG_LEVEL``, INFO.
    """
    if level is None:
        level = get_settings().log_level or os.environ.get("LOG_LEVEL", "INFO")
    level = level.upper()

    logger.remove()  # drop loguru's default handler
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )
