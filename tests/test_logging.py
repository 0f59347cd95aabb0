"""Tests for logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from assetlink.logging import LOGGER_NAME, configure_logging


def _cleanup(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _file_handler(logger: logging.Logger):
    return next(h for h in logger.handlers if hasattr(h, "baseFilename"))


def test_configure_logging_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    logger = configure_logging()

    try:
        log_path = Path(_file_handler(logger).baseFilename)
        assert log_path == tmp_path / "assetlink.log"
        logging.getLogger(f"{LOGGER_NAME}.pipeline.image").info("child message")
        _file_handler(logger).flush()
        assert "child message" in log_path.read_text(encoding="utf-8")
    finally:
        _cleanup(logger)


@pytest.mark.parametrize(
    "provided,expected",
    [
        (Path("custom.log"), "custom.log"),
        (Path("logs"), "logs/assetlink.log"),
    ],
)
def test_configure_logging_with_override(tmp_path, monkeypatch, provided, expected):
    monkeypatch.chdir(tmp_path)
    logger = configure_logging(log_path=provided, level="debug")

    try:
        assert Path(_file_handler(logger).baseFilename) == tmp_path / expected
        assert logger.level == logging.DEBUG
    finally:
        _cleanup(logger)


def test_reconfiguring_replaces_handlers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    configure_logging(level="warn")
    logger = configure_logging(level="warn", mirror_to_console=False)

    try:
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
    finally:
        _cleanup(logger)


def test_unknown_level(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValueError):
        configure_logging(level="chatty")


def test_http_client_loggers_stay_quiet(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    logger = configure_logging(level="debug", mirror_to_console=False)

    try:
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("PIL").level == logging.INFO
        logger.getChild("engine").debug("worker picked logo.png")
        _file_handler(logger).flush()
        line = (tmp_path / "assetlink.log").read_text(encoding="utf-8").splitlines()[-1]
        assert " assetlink.engine worker picked logo.png" in line
    finally:
        _cleanup(logger)
