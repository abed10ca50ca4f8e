"""Loguru setup for applications embedding the scheduler."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from config import Settings

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}"


def configure_logging(settings: Settings | None = None) -> None:
    """
    Replace loguru's default handler with the configured sinks.

    Args:
        settings: Source of log_level/log_file (defaults to get_settings())
    """
    if settings is None:
        from config import get_settings

        settings = get_settings()

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format=LOG_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
