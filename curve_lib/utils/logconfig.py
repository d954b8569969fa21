"""Logging setup for applications embedding curve_lib.

The library itself only creates module loggers; handlers are installed by
the application, optionally through configure_logging.
"""

from __future__ import annotations

import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s %(levelname)-8s [%(name)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: str = 'INFO', log_file: Optional[str] = None) -> logging.Logger:
    """Configure logging for the curve_lib package.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path to a log file. If None, logs go to stderr only.

    Returns:
        The configured package logger.
    """
    package_logger = logging.getLogger('curve_lib')
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Drop handlers from an earlier call so messages are not duplicated
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    package_logger.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger
