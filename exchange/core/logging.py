"""Loguru configuration shared by the API process and the Celery worker."""

import sys

from loguru import logger

from exchange.core.config import Settings

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} | {message}"
)


def configure_logging(settings: Settings) -> None:
    """Replace loguru's default sink with the configured ones."""
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL, format=LOG_FORMAT)
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            level=settings.LOG_LEVEL,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention="14 days",
        )
