"""Logging setup helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "assetlink"
LOG_FILENAME = f"{LOGGER_NAME}.log"
# Transform workers run on threads named ``assetlink_N``.
FILE_FORMAT = "%(asctime)s %(process)08x %(threadName)s %(levelname).1s %(name)s %(message)s"
CONSOLE_FORMAT = "%(levelname)-7s %(message)s"
MAX_BYTES = 2 * 1024 * 1024
BACKUP_COUNT = 5

# Libraries that log per request or per decoded chunk.
_CHATTY_LIBRARIES = {"httpx": logging.WARNING, "httpcore": logging.WARNING, "PIL": logging.INFO}


def configure_logging(
    log_path: Path | None = None,
    level: str = "INFO",
    mirror_to_console: bool = True,
) -> logging.Logger:
    """Configure the ``assetlink`` logger and return it.

    Scanner, pipeline and cache modules log through child loggers, so one
    call covers the whole package. Reconfiguring replaces earlier handlers.
    """

    numeric_level = _normalize_level(level)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False
    logger.setLevel(numeric_level)

    file_path = _resolve_log_path(log_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        _with_format(
            RotatingFileHandler(file_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"),
            FILE_FORMAT,
            numeric_level,
        )
    ]
    if mirror_to_console:
        handlers.append(_with_format(logging.StreamHandler(), CONSOLE_FORMAT, numeric_level))
    for handler in handlers:
        logger.addHandler(handler)

    for name, floor in _CHATTY_LIBRARIES.items():
        logging.getLogger(name).setLevel(max(floor, numeric_level))
    return logger


def _with_format(handler: logging.Handler, fmt: str, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _normalize_level(level: str) -> int:
    candidate = level.strip().upper()
    if candidate == "WARN":
        candidate = "WARNING"
    numeric = logging.getLevelName(candidate)
    if not isinstance(numeric, int):
        raise ValueError(f"Unsupported log level: {level!r}")
    return numeric


def _resolve_log_path(log_path: Path | None) -> Path:
    """A directory (existing, or given without a suffix) receives ``assetlink.log``."""

    if log_path is None:
        return Path.cwd() / LOG_FILENAME
    candidate = log_path if log_path.is_absolute() else Path.cwd() / log_path
    if candidate.is_dir() or not candidate.suffix:
        return candidate / LOG_FILENAME
    return candidate
