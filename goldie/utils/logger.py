"""Goldie — Logging Setup.

Colored console output plus a rotating log file under logs/. Modules get
their logger through get_logger(__name__); the first call configures the
root logger, later calls reuse it. set_level() applies the level from
settings.yaml to the console once the config is loaded.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# ── Files ─────────────────────────────────────────────────
LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_FILE = LOG_DIR / "goldie.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# ── Formats ───────────────────────────────────────────────
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
FILE_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[41m",
}
RESET = "\033[0m"

# Third-party loggers that are too chatty at INFO. httpx also puts the
# bot token into every request URL it logs.
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "telegram.ext": logging.WARNING,
    "apscheduler.executors.default": logging.WARNING,
}

_configured = False


class ColoredFormatter(logging.Formatter):
    """Console formatter with a colored level name and timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy: the file handler formats the same record.
        record = logging.makeLogRecord(record.__dict__)
        color = LEVEL_COLORS.get(record.levelno, "")
        record.levelname = f"{color}{record.levelname:<8}{RESET}"
        record.asctime = f"{color}{self.formatTime(record, self.datefmt)}{RESET}"
        return super().format(record)


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler() -> logging.Handler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(LOG_FILE),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _configure() -> None:
    """Attach the console and file handlers to the root logger, once."""
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(_console_handler())
    root.addHandler(_file_handler())

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    _configured = True


def set_level(level: str) -> None:
    """Apply a level name from settings.yaml (e.g. "DEBUG") to the console.

    The log file always records DEBUG.

    Raises:
        ValueError: If the level name is unknown.
    """
    _configure()
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    for handler in logging.getLogger().handlers:
        if not isinstance(handler, RotatingFileHandler):
            handler.setLevel(numeric)


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, configuring logging on first use.

    Args:
        name: Logger name, normally the calling module's __name__.
    """
    _configure()
    return logging.getLogger(name)
