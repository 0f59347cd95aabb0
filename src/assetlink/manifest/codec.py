"""Encoding and decoding of embedded asset manifests.

A metadata region holds a sequence of self-delimiting records::

    b"ALNK" | version (u8) | body length (u32, little endian) | UTF-8 JSON body

Linkers concatenate contributions from many compiled units and may pad between
them, so NUL bytes between records are skipped.
"""

from __future__ import annotations

import json
import struct
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import ValidationError

from assetlink.errors import CorruptManifest
from assetlink.manifest.locator import google_fonts_url
from assetlink.manifest.types import (
    AssetKind,
    AssetManifestEntry,
    ClassListRecord,
    ManifestRecord,
    MetadataRecord,
)

RECORD_MAGIC = b"ALNK"
CURRENT_VERSION = 2
_HEADER = struct.Struct("<4sBI")

# Version 1 used the asset type names of the first embedding macro.
_V1_KINDS = {
    "image": "image",
    "css": "stylesheet",
    "js": "script",
    "file": "file",
    "folder": "folder",
    "url": "remote_url",
    "tailwind": "classes",
    "metadata": "metadata",
}


def encode_records(records: Iterable[ManifestRecord]) -> bytes:
    """Serialize records into one payload at the current version."""

    return b"".join(encode_body(_record_payload(record)) for record in records)


def encode_body(body: dict[str, Any], version: int = CURRENT_VERSION) -> bytes:
    """Frame one JSON body as a record."""

    data = json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return _HEADER.pack(RECORD_MAGIC, version, len(data)) + data


def decode_records(blob: bytes) -> list[ManifestRecord]:
    """Decode every record of a metadata region, in order."""

    return [_parse_body(body) for body in _iter_bodies(blob)]


def decode_manifest(blob: bytes) -> list[AssetManifestEntry]:
    """Decode only the asset entries of a metadata region."""

    return [record for record in decode_records(blob) if isinstance(record, AssetManifestEntry)]


def _iter_bodies(blob: bytes) -> Iterator[dict[str, Any]]:
    view = memoryview(blob)
    offset = 0
    total = len(view)
    while offset < total:
        if view[offset] == 0:
            offset += 1
            continue
        if total - offset < _HEADER.size:
            raise CorruptManifest(f"Truncated record header at offset {offset}")
        magic, version, length = _HEADER.unpack_from(view, offset)
        if magic != RECORD_MAGIC:
            raise CorruptManifest(f"Bad record magic {bytes(magic)!r} at offset {offset}")
        start = offset + _HEADER.size
        end = start + length
        if end > total:
            raise CorruptManifest(
                f"Record at offset {offset} declares {length} bytes, only {total - start} remain"
            )
        try:
            body = json.loads(bytes(view[start:end]).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptManifest(f"Record at offset {offset} is not valid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise CorruptManifest(f"Record at offset {offset} must be a JSON object")
        yield _migrate(body, version)
        offset = end


def _migrate(body: dict[str, Any], version: int) -> dict[str, Any]:
    if version == CURRENT_VERSION:
        return body
    if version == 1:
        raw_kind = body.get("type")
        if raw_kind not in _V1_KINDS:
            raise CorruptManifest(f"Unknown version 1 asset type {raw_kind!r}")
        migrated: dict[str, Any] = {"kind": _V1_KINDS[raw_kind]}
        if "path" in body:
            migrated["locator"] = body["path"]
        for key in ("options", "classes", "key", "value"):
            if key in body:
                migrated[key] = body[key]
        return migrated
    raise CorruptManifest(f"Unsupported manifest version {version}")


def _parse_body(body: dict[str, Any]) -> ManifestRecord:
    kind = body.get("kind")
    try:
        if kind == "classes":
            classes = body.get("classes", "")
            if isinstance(classes, list):
                classes = " ".join(str(item) for item in classes)
            if not isinstance(classes, str):
                raise ValueError("classes must be a string or a list of strings")
            return ClassListRecord.from_text(classes)
        if kind == "metadata":
            key, value = body.get("key"), body.get("value")
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValueError("metadata records need string key and value")
            return MetadataRecord(key=key, value=value)
        if kind == "font":
            return _font_entry(body)
        locator = body.get("locator")
        if not isinstance(locator, str):
            raise ValueError("asset records need a string locator")
        options = body.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError("options must be an object")
        return AssetManifestEntry.create(AssetKind(kind), locator, options)
    except (ValueError, TypeError, ValidationError) as exc:
        raise CorruptManifest(f"Invalid {kind!r} record: {exc}") from exc


def _font_entry(body: dict[str, Any]) -> AssetManifestEntry:
    families = body.get("families") or []
    weights = body.get("weights") or []
    if not isinstance(families, list) or not all(isinstance(name, str) for name in families):
        raise ValueError("font families must be a list of strings")
    if not isinstance(weights, list) or not all(isinstance(value, int) for value in weights):
        raise ValueError("font weights must be a list of integers")
    url = google_fonts_url(families, weights, body.get("text"), body.get("display"))
    return AssetManifestEntry.create(AssetKind.REMOTE_URL, url, {"as_kind": "stylesheet"})


def _record_payload(record: ManifestRecord) -> dict[str, Any]:
    if isinstance(record, AssetManifestEntry):
        return record.to_payload()
    if isinstance(record, ClassListRecord):
        return {"kind": "classes", "classes": " ".join(sorted(record.classes))}
    return {"kind": "metadata", "key": record.key, "value": record.value}
