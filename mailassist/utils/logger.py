"""
Logging setup shared by every module.

Usage:
    from mailassist.utils.logger import get_logger
    logger = get_logger(__name__)
"""
import logging

from mailassist.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> None:
    """Configure the root logger once, using the level from settings."""
    settings = get_settings()
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    # httpx logs every request at INFO, which drowns out our own lines
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
