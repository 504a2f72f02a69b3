"""Logging for the reminders service.

One named logger, shared by every module via `from logger import logger`.
Records go to a dated file under LOG_DIR, and to stdout when running in a
terminal (not when started as a background service).
"""

import logging
import sys
from datetime import date
from typing import Optional

from config import LOG_DIR, LOG_LEVEL

LOGGER_NAME = "reminders"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"


def _file_handler(level: str) -> logging.Handler:
    handler = logging.FileHandler(LOG_DIR / f"{date.today().isoformat()}.log", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _console_handler(level: str) -> Optional[logging.Handler]:
    if sys.stdout is None or not sys.stdout.isatty():
        return None
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    return handler


def setup_logging(name: str = LOGGER_NAME, level: str = LOG_LEVEL) -> logging.Logger:
    """Configure the named logger; safe to call again (handlers are replaced)."""
    log = logging.getLogger(name)
    log.setLevel(level)
    log.handlers.clear()
    # Uvicorn configures the root logger; keep reminder records out of it
    log.propagate = False

    log.addHandler(_file_handler(level))
    console = _console_handler(level)
    if console is not None:
        log.addHandler(console)

    return log


logger = setup_logging()
