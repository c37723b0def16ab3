"""Logging configuration for the application."""
import logging
import sys

from bizcomment.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure the root logger once at startup.

    ``LOG_LEVEL`` wins when set; otherwise DEBUG in debug mode and INFO
    everywhere else.
    """
    if settings.LOG_LEVEL:
        level = getattr(logging, settings.LOG_LEVEL)
    elif settings.DEBUG:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    # Third-party chatter stays at WARNING regardless of our level.
    for name in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: environment=%s level=%s",
        settings.APP_ENV,
        logging.getLevelName(level),
    )
