"""
Logging configuration.

Configures loguru sinks for workers and scripts.
"""

import sys

from loguru import logger

from affiliate_engine.config.settings import settings


def setup_logging() -> None:
    """Configure stderr sink and rotating file sink."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info(
        f"Logging configured (level={settings.log_level}, "
        f"environment={settings.environment})"
    )
