"""Centralized logging utilities."""

import logging
import sys
from typing import Optional, TextIO
from pathlib import Path

ROOT_LOGGER = 'bqtransfer'

# Chatty third-party loggers kept at WARNING unless debugging
_NOISY_LOGGERS = ('urllib3', 'botocore', 'boto3', 's3transfer')


def setup_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file to write logs to
        format_string: Custom format string
        stream: Console stream (default: stderr, stdout carries command output)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    if format_string is None:
        format_string = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'

    formatter = logging.Formatter(format_string, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(noisy_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger; the package root logger is configured on first use.

    Args:
        name: Logger name (module ``__name__``)

    Returns:
        Logger instance
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        setup_logger(ROOT_LOGGER, level=logging.WARNING)
    return logging.getLogger(name)
