"""Async build engine: collect manifests, then optimize assets on a worker pool."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from assetlink.cache import AssetCache, CacheIndex, FileSystemOutputStore, OutputRecord, OutputStore
from assetlink.config import Config
from assetlink.core.collector import CollectionSummary, Collector, SkippedArtifact
from assetlink.core.retry import retrying_fetcher
from assetlink.errors import AssetLinkError, NetworkError
from assetlink.logging import LOGGER_NAME
from assetlink.manifest.types import AssetFailure, AssetManifestEntry, OptimizedAsset
from assetlink.pipeline import Fetcher, HttpFetcher, Pipeline, UtilityCatalog, output_name

MANIFEST_VERSION = 1

AssetHook = Callable[[OptimizedAsset], Awaitable[None]]
FailureHook = Callable[[AssetFailure], Awaitable[None]]


@dataclass(slots=True)
class BuildStats:
    artifacts: int = 0
    entries: int = 0
    duplicates: int = 0
    transformed: int = 0
    cached: int = 0
    failed: int = 0
    skipped_artifacts: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "artifacts": self.artifacts,
            "entries": self.entries,
            "duplicates": self.duplicates,
            "transformed": self.transformed,
            "cached": self.cached,
            "failed": self.failed,
            "skipped_artifacts": self.skipped_artifacts,
        }


@dataclass(slots=True)
class BuildResult:
    """Outcome of one build, with assets and failures sorted by identifier."""

    assets: list[OptimizedAsset]
    failures: list[AssetFailure]
    metadata: dict[str, str]
    skipped_artifacts: list[SkippedArtifact]
    stats: BuildStats
    io_alert: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def manifest(self) -> dict[str, Any]:
        """Serializable mapping of identifier -> output plus run details."""

        return {
            "version": MANIFEST_VERSION,
            "assets": {asset.identifier: asset.to_dict() for asset in self.assets},
            "metadata": dict(self.metadata),
            "failures": [failure.to_dict() for failure in self.failures],
            "skipped_artifacts": [skipped.to_dict() for skipped in self.skipped_artifacts],
            "stats": self.stats.to_dict(),
        }


@dataclass(slots=True)
class BuildEngine:
    """Coordinates collection and the concurrent optimization workers.

    Collection is sequential and finishes before any transform starts. Each
    registry entry is then handled independently, so one failing asset never
    stops the others.
    """

    pipeline: Pipeline
    cache: AssetCache
    logger: logging.Logger
    workers: int = 1
    best_effort_scan: bool = False
    io_failure_threshold: int = 3
    on_success: AssetHook | None = None
    on_failure: FailureHook | None = None

    async def run(self, artifacts: Sequence[Path]) -> BuildResult:
        """Collect every artifact, then process the finalized registry."""

        collection = Collector(self.logger, best_effort=self.best_effort_scan).collect(artifacts)
        run_record = self.cache.index.start_run(collection.artifacts) if self.cache.index else None

        pipeline = self.pipeline.for_run(collection.classes)
        assets, failures = await self._process_all(collection, pipeline)

        stats = BuildStats(
            artifacts=collection.artifacts,
            entries=len(collection.entries),
            duplicates=collection.duplicates,
            transformed=sum(1 for asset in assets if not asset.cached),
            cached=sum(1 for asset in assets if asset.cached),
            failed=len(failures),
            skipped_artifacts=len(collection.skipped),
        )
        io_failures = sum(1 for failure in failures if failure.kind in _IO_KINDS)
        io_alert = io_failures >= self.io_failure_threshold
        if io_alert:
            self.logger.error(
                "%s asset(s) failed with I/O errors; check output and source directories.",
                io_failures,
            )
        self.logger.info(
            "Build finished: %s transformed, %s cached, %s failed.",
            stats.transformed,
            stats.cached,
            stats.failed,
        )
        if run_record is not None and self.cache.index is not None:
            status = "completed" if not failures else "completed_with_errors"
            self.cache.index.finish_run(run_record.id, status, stats.to_dict())

        return BuildResult(
            assets=sorted(assets, key=lambda asset: asset.identifier),
            failures=sorted(failures, key=lambda failure: failure.identifier),
            metadata=collection.metadata,
            skipped_artifacts=collection.skipped,
            stats=stats,
            io_alert=io_alert,
        )

    def run_sync(self, artifacts: Sequence[Path]) -> BuildResult:
        return asyncio.run(self.run(artifacts))

    def process(
        self,
        identifier: str,
        entry: AssetManifestEntry,
        pipeline: Pipeline | None = None,
    ) -> OptimizedAsset:
        """Produce (or reuse) the output for one entry. Runs on a worker thread."""

        pipeline = pipeline or self.pipeline
        source = pipeline.read_source(entry)
        fingerprint = AssetCache.fingerprint(
            entry,
            pipeline.input_digest(entry, source),
            pipeline.signature(entry),
        )
        hit = self.cache.lookup(fingerprint)
        if hit is not None:
            self.logger.debug("Cache hit for %s -> %s", entry.locator, hit.output_name)
            return self._asset(identifier, entry, hit, cached=True)

        output = pipeline.transform(entry, source)
        digest = pipeline.content_hash(output)
        name = output_name(entry.locator.basename(), digest, output.extension)
        self.cache.write(name, output)
        record = OutputRecord(
            fingerprint=fingerprint,
            identifier=identifier,
            output_name=name,
            content_hash=digest,
            byte_size=output.byte_size,
            preview=output.preview,
            data_url=output.data_url,
        )
        self.cache.record(record)
        self.logger.debug("Wrote %s for %s", name, entry.locator)
        return self._asset(identifier, entry, record, cached=False)

    async def _process_all(
        self, collection: CollectionSummary, pipeline: Pipeline
    ) -> tuple[list[OptimizedAsset], list[AssetFailure]]:
        queue: asyncio.Queue[tuple[str, AssetManifestEntry] | None] = asyncio.Queue()
        for item in collection.entries:
            queue.put_nowait(item)
        worker_count = max(1, min(self.workers, len(collection.entries) or 1))
        for _ in range(worker_count):
            queue.put_nowait(None)

        assets: list[OptimizedAsset] = []
        failures: list[AssetFailure] = []
        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="assetlink") as pool:
            workers = [
                asyncio.create_task(
                    self._worker_loop(
                        name=f"worker-{index + 1:02d}",
                        queue=queue,
                        pool=pool,
                        pipeline=pipeline,
                        assets=assets,
                        failures=failures,
                    )
                )
                for index in range(worker_count)
            ]
            await asyncio.gather(*workers)
        return assets, failures

    async def _worker_loop(
        self,
        *,
        name: str,
        queue: asyncio.Queue[tuple[str, AssetManifestEntry] | None],
        pool: ThreadPoolExecutor,
        pipeline: Pipeline,
        assets: list[OptimizedAsset],
        failures: list[AssetFailure],
    ) -> None:
        loop = asyncio.get_running_loop()
        while True:
            item = await queue.get()
            try:
                if item is None:
                    break
                identifier, entry = item
                self.logger.debug("%s picked %s (%s)", name, entry.locator, entry.kind.value)
                try:
                    asset = await loop.run_in_executor(
                        pool, self.process, identifier, entry, pipeline
                    )
                except AssetLinkError as exc:
                    failure = _failure(identifier, entry, exc)
                    self.logger.warning("%s failed on %s: [%s] %s", name, entry.locator, exc.kind, exc)
                except Exception as exc:  # pylint: disable=broad-except
                    failure = _failure(identifier, entry, exc)
                    self.logger.error(
                        "%s encountered unexpected error on %s: %s",
                        name,
                        entry.locator,
                        exc,
                        exc_info=True,
                    )
                else:
                    assets.append(asset)
                    if self.on_success is not None:
                        await self.on_success(asset)
                    continue
                failures.append(failure)
                if self.on_failure is not None:
                    await self.on_failure(failure)
            finally:
                queue.task_done()

    def _asset(
        self,
        identifier: str,
        entry: AssetManifestEntry,
        record: OutputRecord,
        *,
        cached: bool,
    ) -> OptimizedAsset:
        return OptimizedAsset(
            identifier=identifier,
            kind=entry.kind,
            locator=entry.locator.value,
            output_path=record.output_name,
            content_hash=record.content_hash,
            byte_size=record.byte_size,
            cached=cached,
            preload=bool(getattr(entry.options, "preload", False)),
            preview=record.preview,
            data_url=record.data_url,
        )


_IO_KINDS = {"ReadFailed", "WriteFailed"}


def _failure(identifier: str, entry: AssetManifestEntry, exc: Exception) -> AssetFailure:
    if isinstance(exc, AssetLinkError):
        kind = exc.kind
    else:
        kind = type(exc).__name__
    retryable = bool(exc.retryable) if isinstance(exc, NetworkError) else None
    return AssetFailure(
        identifier=identifier,
        locator=entry.locator.value,
        kind=kind,
        message=str(exc),
        retryable=retryable,
    )


def build_engine(
    config: Config,
    *,
    fetcher: Fetcher | None = None,
    store: OutputStore | None = None,
    logger: logging.Logger | None = None,
) -> BuildEngine:
    """Wire an engine from configuration, with optional injected capabilities."""

    logger = logger or logging.getLogger(LOGGER_NAME)
    base_fetcher = fetcher or HttpFetcher.from_settings(logger, config.network)
    pipeline = Pipeline(
        source_root=config.build.source_root,
        fetcher=retrying_fetcher(base_fetcher, config.network, logger),
        catalog=UtilityCatalog(config.utilities.extend),
        preview_width=config.images.preview_width,
        scan_extensions=config.utilities.scan_extensions,
    )
    index: CacheIndex | None = None
    if config.cache.enabled:
        index = CacheIndex(config.index_path())
        index.initialize()
    cache = AssetCache(
        store or FileSystemOutputStore(config.build.output_dir),
        index,
        verify_content=config.cache.verify_content,
        logger=logger,
    )
    return BuildEngine(
        pipeline=pipeline,
        cache=cache,
        logger=logger,
        workers=config.build.effective_workers(),
        best_effort_scan=config.build.best_effort_scan,
        io_failure_threshold=config.build.io_failure_threshold,
    )
