"""Logging setup for the blackjack bot.

Game events go to ``blackjack.log``, failures to ``errors.log`` and
everything, chat traffic included, to ``debug.log``. The console mirrors
the configured level with coloured level names.
"""

import logging
import logging.handlers
import pathlib
import sys
from typing import Optional

from blackjack_bot.config import settings

_logging_initialized = False

COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

LINE_FORMAT = "[%(asctime)s] %(levelname)-8s [%(short_name)s] %(message)s"
ERROR_FORMAT = (
    "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s\n"
    "    File: %(pathname)s"
)

# file name, level (None = configured level), max size in MB, backups
LOG_FILES = [
    ("blackjack.log", None, 10, 5),
    ("errors.log", logging.ERROR, 5, 10),
    ("debug.log", logging.DEBUG, 20, 3),
]

# Libraries that are chatty at DEBUG
QUIET_LOGGERS = {
    "aiogram": logging.INFO,
    "aiohttp.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "asyncio": logging.WARNING,
}


class ColoredFormatter(logging.Formatter):
    """Console formatter with coloured level names."""

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        result = super().format(record)
        record.levelname = levelname
        return result


class ContextFilter(logging.Filter):
    """Adds ``short_name``, the last part of the logger name, to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.short_name = record.name.rsplit(".", 1)[-1] if record.name else "root"
        return True


def _file_handler(path: pathlib.Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    if level >= logging.ERROR:
        handler.setFormatter(logging.Formatter(ERROR_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(LINE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """
    Install the bot's log handlers on the root logger (once per process).

    Args:
        level: Level name for blackjack.log and the console. Defaults to
            ``settings.log_level``.
        log_dir: Directory for the log files. Defaults to ``settings.log_dir``.
    """
    global _logging_initialized

    if _logging_initialized:
        return
    _logging_initialized = True

    level_name = (level or settings.log_level).upper()
    configured_level = getattr(logging, level_name, logging.INFO)
    directory = pathlib.Path(log_dir or settings.log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    context_filter = ContextFilter()

    handlers = [
        _file_handler(directory / name, file_level or configured_level, max_mb, backups)
        for name, file_level, max_mb, backups in LOG_FILES
    ]

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(configured_level)
    console_handler.setFormatter(ColoredFormatter(LINE_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console_handler)

    for handler in handlers:
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.info(f"Logging: level={level_name} | dir={directory.absolute()}")
