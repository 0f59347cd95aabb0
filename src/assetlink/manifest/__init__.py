"""Asset manifest model and codec."""

from .codec import decode_manifest, decode_records, encode_records
from .locator import AssetLocator, LocatorKind
from .options import (
    FileOptions,
    FolderOptions,
    ImageFormat,
    ImageOptions,
    RemoteKind,
    RemoteOptions,
    ScriptOptions,
    StylesheetOptions,
    TransformOptions,
)
from .types import (
    AssetFailure,
    AssetKind,
    AssetManifestEntry,
    ClassListRecord,
    MetadataRecord,
    OptimizedAsset,
    asset_identifier,
    content_hash,
)

__all__ = [
    "AssetFailure",
    "AssetKind",
    "AssetLocator",
    "AssetManifestEntry",
    "ClassListRecord",
    "FileOptions",
    "FolderOptions",
    "ImageFormat",
    "ImageOptions",
    "LocatorKind",
    "MetadataRecord",
    "OptimizedAsset",
    "RemoteKind",
    "RemoteOptions",
    "ScriptOptions",
    "StylesheetOptions",
    "TransformOptions",
    "asset_identifier",
    "content_hash",
    "decode_manifest",
    "decode_records",
    "encode_records",
]
