"""Loguru configuration."""

import sys

from loguru import logger

from taskweave.core.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings | None = None) -> None:
    """Configure loguru based on settings.

    Replaces loguru's default handler with a colorized stderr sink and, when
    ``TASKWEAVE_LOG_FILE`` is set, a daily-rotated file sink.
    """
    settings = settings or get_settings()
    logger.remove()

    level = "DEBUG" if settings.taskweave_debug else settings.taskweave_log_level

    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
    )

    if settings.taskweave_log_file:
        logger.add(
            settings.taskweave_log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            format=LOG_FORMAT,
        )
