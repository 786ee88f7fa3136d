"""Logging configuration."""

import sys
from pathlib import Path

from loguru import logger

from settings import LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL, to_file: bool = False, log_dir: Path | None = None):
    """Configure logging with stderr and optional file output.

    stdout carries the launcher response, so nothing is ever logged there.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <level>{message}</level>",
        level=level,
        colorize=False,
    )

    if to_file and log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            logger.add(
                log_dir / "worker_{time:YYYY-MM-DD}.log",
                format="{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {process} | {name}:{function}:{line} | {message}",
                level="DEBUG",
                rotation="00:00",
                retention="3 days",
                compression="gz",
                enqueue=False,
            )
        except OSError as e:
            logger.warning("File logging disabled: {}", e)

    return logger
