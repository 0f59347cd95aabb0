"""Configuration utilities for assetlink."""

from .loader import (
    DEFAULT_SCAN_EXTENSIONS,
    BuildSettings,
    CacheSettings,
    Config,
    ImageSettings,
    NetworkSettings,
    UtilitySettings,
    default_config,
    load_config,
)

__all__ = [
    "DEFAULT_SCAN_EXTENSIONS",
    "BuildSettings",
    "CacheSettings",
    "Config",
    "ImageSettings",
    "NetworkSettings",
    "UtilitySettings",
    "default_config",
    "load_config",
]
