"""
Logging configuration with loguru.
"""

import sys
from pathlib import Path
from typing import Any, TextIO

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str = "INFO", sink: TextIO | Any = None, log_file: str | None = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum log level
        sink: Console sink, stdout when omitted
        log_file: Optional path of a rotating log file
    """
    logger.remove()  # Remove default handler

    logger.add(
        sink=sink or sys.stdout,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=True
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="1 day",
            retention="30 days",
            level=level,
            format=FILE_FORMAT
        )
