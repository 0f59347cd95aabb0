"""Sequential collection of manifests from compiled artifacts."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from assetlink.errors import AssetIOError, ScanError
from assetlink.manifest.codec import decode_records
from assetlink.manifest.types import AssetManifestEntry
from assetlink.registry import AssetRegistry
from assetlink.scanner import scan_path


@dataclass(frozen=True, slots=True)
class SkippedArtifact:
    """Artifact left out of a best-effort collection."""

    path: str
    kind: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "kind": self.kind, "message": self.message}


@dataclass(slots=True)
class CollectionSummary:
    """Finalized registry contents after every artifact was scanned."""

    entries: list[tuple[str, AssetManifestEntry]]
    classes: list[str]
    metadata: dict[str, str]
    artifacts: int
    duplicates: int
    skipped: list[SkippedArtifact] = field(default_factory=list)


@dataclass(slots=True)
class Collector:
    """Scan, decode and merge artifact manifests, one artifact at a time.

    Scan errors abort the collection unless ``best_effort`` is set, in which
    case the artifact is skipped and reported. Registry conflicts always
    abort.
    """

    logger: logging.Logger
    best_effort: bool = False

    def collect(self, artifacts: Iterable[Path]) -> CollectionSummary:
        registry = AssetRegistry()
        skipped: list[SkippedArtifact] = []
        count = 0
        for path in artifacts:
            count += 1
            try:
                records = decode_records(scan_path(path))
            except (ScanError, AssetIOError) as exc:
                if isinstance(exc, ScanError) and exc.artifact is None:
                    exc.artifact = str(path)
                if not self.best_effort:
                    self.logger.error("Scanning %s failed: %s", path, exc)
                    raise
                self.logger.warning("Skipping artifact %s: %s", path, exc)
                skipped.append(SkippedArtifact(str(path), exc.kind, str(exc)))
                continue
            self.logger.debug("Artifact %s contributed %s record(s)", path, len(records))
            registry.extend(records)

        entries = registry.finalize()
        self.logger.info(
            "Collected %s unique asset(s) from %s artifact(s) (%s duplicate(s), %s skipped)",
            len(entries),
            count,
            registry.duplicates,
            len(skipped),
        )
        return CollectionSummary(
            entries=entries,
            classes=registry.classes(),
            metadata=registry.metadata(),
            artifacts=count,
            duplicates=registry.duplicates,
            skipped=skipped,
        )
