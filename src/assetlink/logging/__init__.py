"""Logging configuration for assetlink."""

from .setup import LOG_FILENAME, LOGGER_NAME, configure_logging

__all__ = ["LOG_FILENAME", "LOGGER_NAME", "configure_logging"]
