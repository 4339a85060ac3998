"""
Logging for the watch access library.

Library modules share the "watch_access" logger. It prints bare messages to
stdout; the CLI additionally enables a rotating file under logs/.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


LIBRARY_LOGGER_NAME = "watch_access"
LOG_FILE_NAME = "watch_access.log"

_library_logger = None


def init_library_logger(
    verbose: bool = False,
    log_to_file: bool = True,
    log_dir: str = "logs"
) -> logging.Logger:
    """
    Configure the library-wide logger.

    Safe to call again after library code has already fetched the logger:
    the level is updated and the file handler is added if it is missing.

    Args:
        verbose: If True, log at DEBUG, otherwise INFO
        log_to_file: Whether to also write logs/watch_access.log
        log_dir: Directory for the log file

    Returns:
        Configured logger
    """
    global _library_logger

    logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    console = next((h for h in logger.handlers if not isinstance(h, logging.FileHandler)), None)
    if console is None:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console)
    console.setLevel(level)

    has_file = any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    if log_to_file and not has_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / LOG_FILE_NAME

        # 10MB per file, keep 5 backups
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)
        logger.debug(f"Logging to: {log_file}")

    _library_logger = logger
    return logger


def get_library_logger() -> logging.Logger:
    """Get the library-wide logger; console only until the CLI configures it."""
    if _library_logger is None:
        return init_library_logger(log_to_file=False)
    return _library_logger
