"""
Logging Utilities

Every module obtains its logger through ``setup_logger(__name__)``; the
level and an optional shared log file are applied afterwards from the
``logging`` config section via ``configure_logging``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "scanbody_registration"
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Console stays short; the file format adds the thread for parallel runs
CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s'


def _file_handler(log_file: str, level: int) -> logging.FileHandler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Return the named logger, attaching a stdout handler on first use.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path, written in addition to stdout

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    if log_file:
        logger.addHandler(_file_handler(log_file, level))

    return logger


def configure_logging(level: str | int = "INFO", log_file: Optional[str] = None) -> None:
    """
    Apply a level (and optional log file) to every package logger already created.

    Module loggers are created at import time with the default INFO level;
    this re-levels them after the configuration has been loaded.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level
        log_file: Optional log file shared by all package loggers

    Raises:
        ValueError: Unknown level name
    """
    numeric = logging.getLevelName(level) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown logging level: {level!r}")

    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger) or not name.startswith(PACKAGE_LOGGER):
            continue
        logger.setLevel(numeric)
        for handler in logger.handlers:
            handler.setLevel(numeric)
        if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            logger.addHandler(_file_handler(log_file, numeric))
