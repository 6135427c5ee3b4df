"""Logging configuration for the menu item editor."""
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from utils.paths import get_writable_dir

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:{line} - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def configure_logging(log_dir: Optional[Path] = None) -> Path:
    """
    Replace loguru's default sink with the editor's sinks.

    Console output honours LOG_LEVEL, or shows DEBUG for modules whose name
    contains LOG_FILTER. Every run also gets its own debug log plus a shared
    error log. Returns the directory the log files are written to.
    """
    log_dir = Path(log_dir) if log_dir else get_writable_dir("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.remove()

    log_filter = os.getenv("LOG_FILTER", "")
    if log_filter:
        logger.add(sys.stderr, level="DEBUG", format=CONSOLE_FORMAT,
                   filter=lambda record: log_filter in record["name"])
    else:
        logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO").upper(), format=CONSOLE_FORMAT)

    session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    logger.add(log_dir / f"editor_{session_id}.log", rotation="5 MB", retention=5,
               level="DEBUG", format=FILE_FORMAT)
    logger.add(log_dir / "error.log", rotation="10 MB", retention="14 days",
               level="ERROR", format=FILE_FORMAT)
    return log_dir
