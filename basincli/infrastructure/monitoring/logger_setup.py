"""Centralized logging configuration for the basincli application.

Sets up standard Python logging with appropriate levels, formatters,
and handlers. Console logging goes to stderr so that command output on
stdout stays machine-readable.
"""

import logging
import logging.handlers
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3


def parse_log_level(name: Optional[str], debug: bool = False) -> int:
    """Maps a level name ('info', 'DEBUG', ...) to a logging constant."""
    if debug:
        return logging.DEBUG
    if not name:
        return DEFAULT_LOG_LEVEL
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}")

    # httpx logs every request at INFO; keep it quiet unless debugging.
    logging.getLogger("httpx").setLevel(logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING)
    logging.debug(f"Logging configured. Level={logging.getLevelName(log_level)}")
