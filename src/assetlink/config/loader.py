"""Configuration loading for assetlink."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_PATH = Path("config/default.yaml")
LOCAL_CONFIG_PATH = Path("config/local.yaml")

# Template and source files searched for utility class names.
DEFAULT_SCAN_EXTENSIONS = (".html", ".htm", ".rs", ".js", ".ts", ".jsx", ".tsx", ".vue", ".svelte")
INDEX_DIRNAME = ".assetlink"
INDEX_FILENAME = "index.sqlite"


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    level: str = Field(default="info")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("Logging level must be a string.")
        normalized = value.strip().lower()
        if normalized not in {"debug", "info", "warn", "warning", "error", "critical"}:
            raise ValueError(f"Unsupported logging level: {value!r}")
        return normalized


class BuildSettings(BaseModel):
    """Where sources are read from and outputs are written to."""

    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Path("dist/assets")
    source_root: Path = Path(".")
    workers: int | None = Field(default=None, ge=1)
    best_effort_scan: bool = False
    io_failure_threshold: int = Field(default=3, ge=1)
    manifest_path: Path | None = None

    def effective_workers(self) -> int:
        return self.workers or os.cpu_count() or 1


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    index_path: Path | None = None
    verify_content: bool = True


class NetworkSettings(BaseModel):
    """Remote fetch policy."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_size_bytes: int = Field(default=50_000_000, ge=1)
    max_retries: int = Field(default=0, ge=0)
    backoff_min_seconds: float = Field(default=1.0, ge=0.0)
    backoff_max_seconds: float = Field(default=30.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    user_agent: str = "assetlink"

    @model_validator(mode="after")
    def _validate_backoff(self) -> NetworkSettings:
        if self.backoff_max_seconds < self.backoff_min_seconds:
            raise ValueError("backoff_max_seconds must not be smaller than backoff_min_seconds.")
        return self


class ImageSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    preview_width: int = Field(default=24, ge=1, le=256)


class UtilitySettings(BaseModel):
    """Utility stylesheet generation."""

    model_config = ConfigDict(extra="forbid")

    extend: dict[str, str] = Field(default_factory=dict)
    scan_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_SCAN_EXTENSIONS))

    @field_validator("extend", mode="before")
    @classmethod
    def _normalize_extend(cls, value: Any) -> dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError("utilities.extend must be a mapping of class name -> declarations.")
        normalized: dict[str, str] = {}
        for key, body in value.items():
            name = str(key).strip()
            if not name or any(ch.isspace() for ch in name):
                raise ValueError(f"Invalid utility class name: {key!r}")
            if not isinstance(body, str) or ":" not in body:
                raise ValueError(f"Utility {name!r} needs a 'property:value' declaration string.")
            normalized[name] = body.strip()
        return normalized

    @field_validator("scan_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise TypeError("utilities.scan_extensions must be a list of suffixes.")
        cleaned: list[str] = []
        for item in value:
            suffix = str(item).strip().lower()
            if not suffix:
                continue
            cleaned.append(suffix if suffix.startswith(".") else f".{suffix}")
        return cleaned


class ConfigModel(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    utilities: UtilitySettings = Field(default_factory=UtilitySettings)


@dataclass(slots=True)
class Config:
    """Validated configuration with convenience helpers."""

    model: ConfigModel
    raw: Mapping[str, Any] = field(repr=False)
    loaded_from: tuple[str, ...] = field(default_factory=tuple, repr=False)

    @property
    def logging(self) -> LoggingSettings:
        return self.model.logging

    @property
    def build(self) -> BuildSettings:
        return self.model.build

    @property
    def cache(self) -> CacheSettings:
        return self.model.cache

    @property
    def network(self) -> NetworkSettings:
        return self.model.network

    @property
    def images(self) -> ImageSettings:
        return self.model.images

    @property
    def utilities(self) -> UtilitySettings:
        return self.model.utilities

    def index_path(self) -> Path:
        """Return the cache index location, defaulting inside the output directory."""

        if self.cache.index_path is not None:
            return self.cache.index_path
        return self.build.output_dir / INDEX_DIRNAME / INDEX_FILENAME

    def with_overrides(self, overrides: Mapping[str, Any]) -> Config:
        """Return a new config with a nested mapping merged on top."""

        merged = _merge_dicts(self.raw, overrides)
        try:
            model = ConfigModel.model_validate(merged)
        except ValidationError as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc
        return Config(model=model, raw=merged, loaded_from=self.loaded_from)

    def model_dump(self) -> Mapping[str, Any]:
        """Expose the parsed configuration as a mapping."""

        return self.model.model_dump(mode="json")


def default_config() -> Config:
    """Configuration with built-in defaults only."""

    return Config(model=ConfigModel(), raw={}, loaded_from=())


def load_config(path: Path | None = None) -> Config:
    """Load configuration from defaults/local overrides, or from an explicit config document."""

    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        override_path = _resolve_path(path)
        if override_path is None or not override_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        merged = _merge_dicts(merged, _read_yaml(override_path))
        loaded_from.append(str(override_path))
    else:
        default_candidate = _resolve_path(DEFAULT_CONFIG_PATH)
        if default_candidate and default_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(default_candidate))
            loaded_from.append(str(default_candidate))
        else:
            packaged_payload = _read_packaged_yaml("assetlink.config", "default.yaml")
            if packaged_payload is not None:
                merged = _merge_dicts(merged, packaged_payload)
                loaded_from.append("assetlink.config:default.yaml")

        local_candidate = _resolve_path(LOCAL_CONFIG_PATH)
        if local_candidate and local_candidate.exists():
            merged = _merge_dicts(merged, _read_yaml(local_candidate))
            loaded_from.append(str(local_candidate))

    if not merged:
        raise FileNotFoundError("No configuration data could be loaded.")

    try:
        model = ConfigModel.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    return Config(model=model, raw=merged, loaded_from=tuple(loaded_from))


def _resolve_path(path: Path) -> Path | None:
    """Resolve configuration paths relative to the current working directory."""

    if path is None:
        return None
    return path if path.is_absolute() else Path.cwd() / path


def _read_yaml(path: Path) -> dict[str, Any]:
    content = path.read_text(encoding="utf-8")
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must define a mapping at the top level.")
    return data


def _read_packaged_yaml(package: str, name: str) -> dict[str, Any] | None:
    """Read YAML embedded in a Python package via importlib.resources."""

    try:
        content = resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Packaged configuration {package}:{name} must define a mapping at the top level."
        )
    return data


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge two dictionaries, with override values taking precedence."""

    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
