"""
Configure logging for the application.

This module provides a consistent logging configuration across the entire
application, ensuring log messages are formatted correctly and directed
to the appropriate outputs (console, file).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from voicelog.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(
    name: str = LOGGER_NAME,
    log_dir: str = None,
    log_filename: str = "voicelog.log",
) -> logging.Logger:
    """
    Configure a named logger with console and rotating file handlers.

    The level comes from ``LOG_LEVEL`` and the directory from ``LOG_DIR``
    (default ``logs/``). File logging is skipped with a warning when the
    directory cannot be created.

    Returns:
        logging.Logger: The configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(os.getenv("LOG_LEVEL", "INFO")))

    # Remove existing handlers if any
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_path = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / log_filename,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not set up file logging: {e}")

    # Prevent log propagation to root logger
    logger.propagate = False

    return logger


def set_log_level(level_name: str) -> None:
    """Apply a level to every voicelog logger configured so far."""
    level = _resolve_level(level_name)
    for logger_name, logger in logging.root.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and logger_name.startswith(LOGGER_NAME):
            logger.setLevel(level)
