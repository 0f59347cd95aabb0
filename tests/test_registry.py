"""Tests for the deduplicating asset registry."""

from __future__ import annotations

import pytest

from assetlink.errors import RegistryConflict
from assetlink.manifest import AssetManifestEntry, ClassListRecord, MetadataRecord
from assetlink.registry import AssetRegistry


def test_identical_requests_collapse():
    registry = AssetRegistry()
    first = registry.insert(AssetManifestEntry.create("image", "logo.png", {"format": "jpeg"}))
    second = registry.insert(AssetManifestEntry.create("image", "./logo.png", {"format": "jpg"}))

    assert first == second
    assert len(registry) == 1
    assert registry.duplicates == 1


def test_conflicting_hints_raise():
    registry = AssetRegistry()
    registry.insert(AssetManifestEntry.create("script", "app.js"))
    incoming = AssetManifestEntry.create("script", "app.js", {"preload": True})

    with pytest.raises(RegistryConflict) as excinfo:
        registry.insert(incoming)

    assert excinfo.value.identifier == incoming.identifier
    assert excinfo.value.incoming is incoming
    assert excinfo.value.kind == "Conflict"


def test_finalize_sorts_by_identifier():
    registry = AssetRegistry()
    for name in ("c.txt", "a.txt", "b.txt"):
        registry.insert(AssetManifestEntry.create("file", name))

    identifiers = [identifier for identifier, _ in registry.finalize()]
    assert identifiers == sorted(identifiers)
    assert len(identifiers) == 3


def test_side_records_are_merged():
    registry = AssetRegistry()
    registry.extend(
        [
            ClassListRecord(frozenset({"p-4", "flex"})),
            ClassListRecord(frozenset({"flex", "text-center"})),
            MetadataRecord("crate", "web"),
            MetadataRecord("crate", "web"),
            MetadataRecord("profile", "release"),
        ]
    )

    assert registry.classes() == ["flex", "p-4", "text-center"]
    assert registry.metadata() == {"crate": "web", "profile": "release"}
    assert len(registry) == 0


def test_metadata_conflict():
    registry = AssetRegistry()
    registry.insert_metadata(MetadataRecord("crate", "web"))
    with pytest.raises(RegistryConflict):
        registry.insert_metadata(MetadataRecord("crate", "cli"))
