"""Deduplicating registry of asset requests."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from assetlink.errors import RegistryConflict
from assetlink.manifest.types import (
    AssetManifestEntry,
    ClassListRecord,
    ManifestRecord,
    MetadataRecord,
    asset_identifier,
)

logger = logging.getLogger(__name__)


class AssetRegistry:
    """Merges manifest records from many artifacts into one identifier-keyed set."""

    def __init__(self) -> None:
        self._entries: dict[str, AssetManifestEntry] = {}
        self._classes: set[str] = set()
        self._metadata: dict[str, str] = {}
        self._duplicates = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    @property
    def duplicates(self) -> int:
        """Number of inserts collapsed onto an existing entry."""

        return self._duplicates

    def insert(self, entry: AssetManifestEntry) -> str:
        """Add an entry and return its identifier.

        Raises ``RegistryConflict`` when a different request already owns the
        identifier.
        """

        identifier = asset_identifier(entry)
        existing = self._entries.get(identifier)
        if existing is None:
            self._entries[identifier] = entry
            return identifier
        if not existing.same_request(entry):
            raise RegistryConflict(identifier, existing, entry)
        self._duplicates += 1
        return identifier

    def add(self, record: ManifestRecord) -> None:
        """Route any decoded record to the matching collection."""

        if isinstance(record, AssetManifestEntry):
            self.insert(record)
        elif isinstance(record, ClassListRecord):
            self.add_classes(record.classes)
        else:
            self.insert_metadata(record)

    def extend(self, records: Iterable[ManifestRecord]) -> None:
        for record in records:
            self.add(record)

    def add_classes(self, names: Iterable[str]) -> None:
        self._classes.update(name for name in names if name)

    def insert_metadata(self, record: MetadataRecord) -> None:
        existing = self._metadata.get(record.key)
        if existing is None:
            self._metadata[record.key] = record.value
        elif existing != record.value:
            raise RegistryConflict(
                f"metadata:{record.key}",
                MetadataRecord(record.key, existing),
                record,
            )

    def get(self, identifier: str) -> AssetManifestEntry | None:
        return self._entries.get(identifier)

    def finalize(self) -> list[tuple[str, AssetManifestEntry]]:
        """Return unique entries sorted by identifier."""

        logger.debug(
            "Registry finalized with %s entries (%s duplicates collapsed)",
            len(self._entries),
            self._duplicates,
        )
        return sorted(self._entries.items())

    def classes(self) -> list[str]:
        return sorted(self._classes)

    def metadata(self) -> dict[str, str]:
        return dict(sorted(self._metadata.items()))
