"""Logging setup for portrait-matte."""

import logging
from pathlib import Path
from typing import Optional, Union

from .paths import get_logs_dir


LOGGER_NAME = "portrait_matte"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path, bool]] = None
) -> logging.Logger:
    """
    Configure the package logger with a console handler and an optional file handler.

    Args:
        log_level: Level name such as "DEBUG" or "INFO".
        log_file: Path of a log file, True for the default file in the logs
                  directory, or None for console only.

    Returns:
        The configured package logger.
    """
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Replace handlers from a previous call
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        if log_file is True:
            log_file = get_logs_dir() / f"{LOGGER_NAME}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
