"""
Logging setup shared by all sitecms modules.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

ROOT_LOGGER_NAME = 'sitecms'

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Attach a stdout handler to the package root logger.

    Args:
        level: Level name (e.g. 'DEBUG'). Falls back to SITECMS_LOG_LEVEL, then INFO
    """
    global _configured

    level_name = (level or os.environ.get('SITECMS_LOG_LEVEL') or 'INFO').upper()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if not _configured:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream_handler)
        _configured = True


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a module logger under the sitecms hierarchy.

    Args:
        name: Logger name, usually __name__
        level: Optional level override for the package root logger

    Returns:
        Configured logger
    """
    if not _configured or level:
        configure_logging(level)
    return logging.getLogger(name)
