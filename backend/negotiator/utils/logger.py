"""
Logging setup.

WHAT: Root logger configuration and per-module logger access
WHY: Agent rounds run unattended; decisions, fallbacks, and swallowed side-effect
     failures are only visible in the logs
HOW: stdlib logging, console at LOG_LEVEL, rotating file at DEBUG
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..core.config import settings

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure the root logger. Safe to call more than once.

    Args:
        level: Console level name, defaults to settings.LOG_LEVEL
        log_file: File path, defaults to settings.LOG_FILE; empty string disables the file
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    console_level = logging.getLevelName(level_name)
    if not isinstance(console_level, int):
        console_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
    root.addHandler(console)

    path = settings.LOG_FILE if log_file is None else log_file
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=3)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging configured (console={level_name}, file={path or 'off'})")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
