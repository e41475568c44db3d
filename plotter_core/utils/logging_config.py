"""
Logging Configuration Utility

Root logger setup for the plotter: a size-rotated log file plus a
compact console stream.
"""

import logging
import logging.handlers
import os
import sys

DEFAULT_LOG_FILE = "plotter.log"

FILE_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DETAILED_FORMAT = ('%(asctime)s - %(name)s - %(levelname)s - '
                   '%(filename)s:%(lineno)d - %(funcName)s() - %(message)s')
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def _numeric_level(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(level: str = "INFO",
                  log_file: str = DEFAULT_LOG_FILE,
                  max_file_size_mb: float = 10.0,
                  backup_count: int = 5,
                  console_output: bool = True,
                  detailed_format: bool = False) -> bool:
    """
    Configure the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path; empty or None disables file logging
        max_file_size_mb: Size in MB at which the log file rotates
        backup_count: Number of rotated files to keep
        console_output: Also log to stdout
        detailed_format: Include file, line and function in file records

    Returns:
        bool: True if logging setup successful
    """
    try:
        numeric_level = _numeric_level(level)
        root = logging.getLogger()
        root.setLevel(numeric_level)

        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=int(max_file_size_mb * 1024 * 1024),
                backupCount=backup_count
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(
                DETAILED_FORMAT if detailed_format else FILE_FORMAT,
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            root.addHandler(file_handler)

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(numeric_level)
            console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            root.addHandler(console_handler)

        root.info(f"Logging initialized - Level: {level}, File: {log_file or 'none'}")
        return True

    except (OSError, ValueError) as e:
        print(f"Failed to setup logging: {e}")
        return False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Configured logger
    """
    return logging.getLogger(name)


def set_log_level(level: str):
    """Change the level of the root logger and all of its handlers."""
    numeric_level = _numeric_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.setLevel(numeric_level)
    root.info(f"Log level changed to {level}")
