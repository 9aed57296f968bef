"""Logging configuration shared by the CLI and library callers"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .constants import DEFAULT_LOG_FORMAT, NOISY_LOGGERS

ROOT_LOGGER_NAME = "geoprec"


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None,
                  stream=None) -> logging.Logger:
    """Configure the package logger.

    Console output goes to stderr (stdout stays clean for --json output).
    When `log_file` is given a rotating file handler (5MB, 3 backups) records
    everything from DEBUG up.
    """
    log_level = getattr(logging, str(level).upper(), logging.WARNING)

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplication
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
    package_logger.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        ))
        package_logger.addHandler(file_handler)

    package_logger.propagate = False

    # Set third-party loggers to WARNING to reduce noise
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return package_logger
