"""Per-kind transform options."""

from __future__ import annotations

import json
import re
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class ImageFormat(StrEnum):
    """Target encodings for image assets."""

    ORIGINAL = "original"
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"
    AVIF = "avif"


class RemoteKind(StrEnum):
    """Branch used for the body of a remote asset."""

    AUTO = "auto"
    IMAGE = "image"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    FILE = "file"


class TransformOptions(BaseModel):
    """Base class for option sets.

    ``hint_fields`` only decorate the manifest record and never change the
    produced bytes, so they are left out of the asset identity.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    hint_fields: ClassVar[frozenset[str]] = frozenset()

    def normalized(self) -> bytes:
        """Return the canonical byte form of every option."""

        return _canonical_json(self.model_dump(mode="json"))

    def identity(self) -> bytes:
        """Return the canonical byte form of the transform-relevant options."""

        payload = self.model_dump(mode="json", exclude=set(self.hint_fields))
        return _canonical_json(payload)


class ImageOptions(TransformOptions):
    hint_fields: ClassVar[frozenset[str]] = frozenset({"preload", "preview", "url_encoded"})

    format: ImageFormat = ImageFormat.ORIGINAL
    quality: int | None = Field(default=None, ge=0, le=100)
    max_width: int | None = Field(default=None, ge=1)
    max_height: int | None = Field(default=None, ge=1)
    palette_colors: int | None = Field(default=None, ge=2, le=256)
    lossless: bool = False
    background: str = "#ffffff"
    preload: bool = False
    preview: bool = False
    url_encoded: bool = False

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return "jpeg" if lowered == "jpg" else lowered
        return value

    @field_validator("background", mode="before")
    @classmethod
    def _normalize_background(cls, value: Any) -> str:
        if not isinstance(value, str) or not _HEX_COLOR.match(value.strip()):
            raise ValueError("background must be a #rgb or #rrggbb color.")
        text = value.strip().lower()
        if len(text) == 4:
            text = "#" + "".join(ch * 2 for ch in text[1:])
        return text


class StylesheetOptions(TransformOptions):
    hint_fields: ClassVar[frozenset[str]] = frozenset({"preload"})

    minify: bool = True
    utilities: bool = False
    classes: tuple[str, ...] = ()
    scan_roots: tuple[str, ...] = ()
    preload: bool = False

    @field_validator("classes", mode="before")
    @classmethod
    def _normalize_classes(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split()
        names = {str(item).strip() for item in value}
        return tuple(sorted(name for name in names if name))

    @field_validator("scan_roots", mode="before")
    @classmethod
    def _normalize_roots(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        roots = {str(item).replace("\\", "/").rstrip("/") or "/" for item in value}
        return tuple(sorted(roots))


class ScriptOptions(TransformOptions):
    hint_fields: ClassVar[frozenset[str]] = frozenset({"preload"})

    minify: bool = True
    preload: bool = False


class FileOptions(TransformOptions):
    pass


class FolderOptions(TransformOptions):
    include_hidden: bool = False


class RemoteOptions(TransformOptions):
    as_kind: RemoteKind = RemoteKind.AUTO
    timeout_seconds: float | None = Field(default=None, gt=0)


def _canonical_json(payload: Any) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )
