"""
Logging setup

Console and file output for the nextcall package loggers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import LOG_FILE, LOG_LEVEL

PACKAGE_LOGGER = "nextcall"


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = LOG_FILE,
    console: bool = True,
) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Level name, defaults to NEXTCALL_LOG_LEVEL
        log_file: File to append to, or None for no file output
        console: Also log to stdout

    Returns:
        The configured "nextcall" logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    if logger.handlers:
        return logger

    level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
