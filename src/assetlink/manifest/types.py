"""Core data model shared by the scanner, registry, pipeline and engine."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from assetlink.manifest.locator import AssetLocator, LocatorKind
from assetlink.manifest.options import (
    FileOptions,
    FolderOptions,
    ImageOptions,
    RemoteOptions,
    ScriptOptions,
    StylesheetOptions,
    TransformOptions,
)

CONTENT_HASH_LENGTH = 16


class AssetKind(StrEnum):
    """Kinds of asset requests a manifest can carry."""

    IMAGE = "image"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    FILE = "file"
    FOLDER = "folder"
    REMOTE_URL = "remote_url"


OPTION_MODELS: dict[AssetKind, type[TransformOptions]] = {
    AssetKind.IMAGE: ImageOptions,
    AssetKind.STYLESHEET: StylesheetOptions,
    AssetKind.SCRIPT: ScriptOptions,
    AssetKind.FILE: FileOptions,
    AssetKind.FOLDER: FolderOptions,
    AssetKind.REMOTE_URL: RemoteOptions,
}


@dataclass(frozen=True, slots=True)
class AssetManifestEntry:
    """One asset request decoded from an artifact."""

    kind: AssetKind
    locator: AssetLocator
    options: TransformOptions

    @classmethod
    def create(
        cls,
        kind: AssetKind | str,
        locator: AssetLocator | str,
        options: TransformOptions | Mapping[str, Any] | None = None,
    ) -> AssetManifestEntry:
        """Build an entry, validating options against the kind's schema."""

        asset_kind = AssetKind(kind)
        model = OPTION_MODELS[asset_kind]
        if isinstance(locator, str):
            locator = AssetLocator.parse(locator, folder=asset_kind is AssetKind.FOLDER)
        if asset_kind is AssetKind.REMOTE_URL and not locator.is_remote:
            raise ValueError(f"remote_url entries need an http(s) locator, got {locator.value!r}")
        if asset_kind is AssetKind.FOLDER and locator.kind is not LocatorKind.FOLDER:
            raise ValueError("folder entries need a local folder locator.")
        if options is None:
            resolved = model()
        elif isinstance(options, TransformOptions):
            if not isinstance(options, model):
                raise TypeError(
                    f"{asset_kind.value} entries take {model.__name__}, got {type(options).__name__}"
                )
            resolved = options
        else:
            resolved = model.model_validate(dict(options))
        return cls(kind=asset_kind, locator=locator, options=resolved)

    @property
    def identifier(self) -> str:
        return asset_identifier(self)

    def same_request(self, other: AssetManifestEntry) -> bool:
        """Structural equality over normalized forms."""

        return (
            self.kind is other.kind
            and self.locator.canonical() == other.locator.canonical()
            and self.options.normalized() == other.options.normalized()
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "locator": self.locator.value,
            "options": self.options.model_dump(mode="json"),
        }


@dataclass(frozen=True, slots=True)
class ClassListRecord:
    """Utility class names referenced by one compiled unit."""

    classes: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_text(cls, text: str) -> ClassListRecord:
        return cls(frozenset(text.split()))


@dataclass(frozen=True, slots=True)
class MetadataRecord:
    """Arbitrary key/value pair forwarded to the final manifest."""

    key: str
    value: str


ManifestRecord = AssetManifestEntry | ClassListRecord | MetadataRecord


@dataclass(slots=True)
class OptimizedAsset:
    """Produced output for one registry entry."""

    identifier: str
    kind: AssetKind
    locator: str
    output_path: str
    content_hash: str
    byte_size: int
    cached: bool = False
    preload: bool = False
    preview: str | None = None
    data_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "locator": self.locator,
            "path": self.output_path,
            "hash": self.content_hash,
            "size": self.byte_size,
        }
        if self.preload:
            payload["preload"] = True
        if self.preview is not None:
            payload["preview"] = self.preview
        if self.data_url is not None:
            payload["data_url"] = self.data_url
        return payload


@dataclass(frozen=True, slots=True)
class AssetFailure:
    """Per-asset failure captured by the engine."""

    identifier: str
    locator: str
    kind: str
    message: str
    retryable: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "locator": self.locator,
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }


def asset_identifier(entry: AssetManifestEntry) -> str:
    """Stable identity of a logical asset request."""

    hasher = hashlib.sha256()
    hasher.update(entry.kind.value.encode("utf-8"))
    hasher.update(b"\0")
    hasher.update(entry.locator.canonical().encode("utf-8"))
    hasher.update(b"\0")
    hasher.update(entry.options.identity())
    return hasher.hexdigest()


def content_hash(data: bytes) -> str:
    """Hash of produced output bytes, used in cache-busting file names."""

    return hashlib.sha256(data).hexdigest()[:CONTENT_HASH_LENGTH]


def tree_hash(files: Iterable[tuple[str, bytes]]) -> str:
    """Content hash over a folder output, independent of enumeration order."""

    hasher = hashlib.sha256()
    for relative, data in sorted(files, key=lambda item: item[0]):
        encoded = relative.encode("utf-8")
        hasher.update(len(encoded).to_bytes(4, "little"))
        hasher.update(encoded)
        hasher.update(len(data).to_bytes(8, "little"))
        hasher.update(data)
    return hasher.hexdigest()[:CONTENT_HASH_LENGTH]
