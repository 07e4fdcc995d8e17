"""
Logging setup shared by every backend module.

Usage:
    from logger import setup_logger
    logger = setup_logger(__name__)
"""

import logging
import sys

from settings import settings


def setup_logger(name: str) -> logging.Logger:
    """Return a logger with a single stdout handler and consistent format.

    Calling this twice for the same name does not add a second handler.
    """

    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(settings.log_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(settings.log_level)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger
