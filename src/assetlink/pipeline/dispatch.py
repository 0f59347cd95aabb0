"""Per-kind transform dispatch."""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import TypeVar

import PIL

from assetlink.config import DEFAULT_SCAN_EXTENSIONS
from assetlink.manifest.options import (
    ImageOptions,
    RemoteKind,
    RemoteOptions,
    ScriptOptions,
    StylesheetOptions,
    TransformOptions,
)
from assetlink.manifest.types import AssetKind, AssetManifestEntry, content_hash, tree_hash
from assetlink.pipeline.base import Fetcher, SourceInput, TransformOutput
from assetlink.pipeline.files import file_extension, read_file, read_tree
from assetlink.pipeline.image import transform_image
from assetlink.pipeline.remote import (
    classify_content_type,
    extension_from_content_type,
    validate_content_type,
)
from assetlink.pipeline.script import transform_script
from assetlink.pipeline.stylesheet import collect_classes, transform_stylesheet
from assetlink.pipeline.utilities import UtilityCatalog

logger = logging.getLogger(__name__)

_Options = TypeVar("_Options", bound=TransformOptions)

# Bump when any transform changes its output for unchanged inputs.
PIPELINE_VERSION = "1"

# Branch the body of a non-remote_url entry with a URL locator must match.
_EXPECTED_REMOTE = {
    AssetKind.IMAGE: RemoteKind.IMAGE,
    AssetKind.STYLESHEET: RemoteKind.STYLESHEET,
    AssetKind.SCRIPT: RemoteKind.SCRIPT,
    AssetKind.FILE: RemoteKind.FILE,
}


def output_name(basename: str, digest: str, extension: str) -> str:
    """Cache-busting output name ``{basename}-{hash}.{ext}``."""

    stem = f"{basename}-{digest}"
    return f"{stem}.{extension}" if extension else stem


class Pipeline:
    """Turns registry entries into output bytes.

    Local sources are read from ``source_root``; remote ones go through the
    injected ``fetcher``. The pipeline never retries a failed fetch.
    """

    def __init__(
        self,
        *,
        source_root: Path,
        fetcher: Fetcher,
        catalog: UtilityCatalog | None = None,
        referenced_classes: Iterable[str] = (),
        preview_width: int = 24,
        scan_extensions: Sequence[str] = DEFAULT_SCAN_EXTENSIONS,
    ) -> None:
        self.source_root = source_root
        self.fetcher = fetcher
        self.catalog = catalog or UtilityCatalog()
        self.referenced_classes = frozenset(referenced_classes)
        self.preview_width = preview_width
        self.scan_extensions = tuple(scan_extensions)
        self._scanned: dict[tuple[str, ...], frozenset[str]] = {}
        self._scan_lock = threading.Lock()

    def for_run(self, classes: Iterable[str]) -> Pipeline:
        """Copy for one build, adding artifact class names and starting with no scanned templates."""

        return Pipeline(
            source_root=self.source_root,
            fetcher=self.fetcher,
            catalog=self.catalog,
            referenced_classes=self.referenced_classes | frozenset(classes),
            preview_width=self.preview_width,
            scan_extensions=self.scan_extensions,
        )

    def read_source(self, entry: AssetManifestEntry) -> SourceInput | None:
        """Read local inputs; remote inputs are fetched lazily by :meth:`transform`."""

        if entry.locator.is_remote:
            return None
        path = entry.locator.resolve(self.source_root)
        if entry.kind is AssetKind.FOLDER:
            include_hidden = bool(getattr(entry.options, "include_hidden", False))
            return SourceInput(files=read_tree(path, include_hidden=include_hidden))
        return SourceInput(data=read_file(path))

    def input_digest(self, entry: AssetManifestEntry, source: SourceInput | None) -> str:
        """Digest of the inputs; remote inputs are identified by their canonical URL."""

        if source is None:
            return hashlib.sha256(entry.locator.canonical().encode("utf-8")).hexdigest()
        if source.files is not None:
            return tree_hash(source.files.items())
        return hashlib.sha256(source.data or b"").hexdigest()

    def signature(self, entry: AssetManifestEntry) -> str:
        """Digest of everything besides inputs and options that shapes the output."""

        parts = [f"pipeline={PIPELINE_VERSION}", f"kind={entry.kind.value}"]
        if entry.kind in (AssetKind.IMAGE, AssetKind.REMOTE_URL):
            parts.append(f"pillow={PIL.__version__}")
            parts.append(f"preview_width={self.preview_width}")
        options = entry.options
        if isinstance(options, StylesheetOptions) and options.utilities:
            parts.append(f"catalog={self.catalog.signature()}")
            parts.append("classes=" + " ".join(sorted(self.referenced_for(options))))
        return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()

    def referenced_for(self, options: StylesheetOptions) -> frozenset[str]:
        """Class names from artifacts plus those scanned from ``scan_roots``."""

        if not options.scan_roots:
            return self.referenced_classes
        key = options.scan_roots
        with self._scan_lock:
            cached = self._scanned.get(key)
            if cached is None:
                roots = [self.source_root / root for root in options.scan_roots]
                cached = frozenset(
                    collect_classes(roots, extensions=self.scan_extensions, catalog=self.catalog)
                )
                self._scanned[key] = cached
                logger.debug("Scanned %s class names from %s", len(cached), ", ".join(key))
        return self.referenced_classes | cached

    def transform(self, entry: AssetManifestEntry, source: SourceInput | None) -> TransformOutput:
        """Produce output for one entry, fetching remote sources first."""

        if source is None:
            source = self._fetch(entry)
        return _BRANCHES[entry.kind](self, entry, source)

    def content_hash(self, output: TransformOutput) -> str:
        if output.files is not None:
            return tree_hash(output.files.items())
        return content_hash(output.data or b"")

    def _fetch(self, entry: AssetManifestEntry) -> SourceInput:
        timeout = entry.options.timeout_seconds if isinstance(entry.options, RemoteOptions) else None
        resource = self.fetcher.fetch(entry.locator.value, timeout=timeout)
        expected = _EXPECTED_REMOTE.get(entry.kind)
        if expected is not None:
            validate_content_type(resource.content_type, resource.url, expected)
        return SourceInput(data=resource.data, content_type=resource.content_type)

    def _image(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        options = _options(entry, ImageOptions)
        return transform_image(source.data or b"", options, preview_width=self.preview_width)

    def _stylesheet(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        options = _options(entry, StylesheetOptions)
        referenced = self.referenced_for(options) if options.utilities else ()
        return transform_stylesheet(
            source.data or b"", options, catalog=self.catalog, referenced=referenced
        )

    def _script(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        return transform_script(source.data or b"", _options(entry, ScriptOptions))

    def _file(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        if entry.locator.is_remote:
            extension = extension_from_content_type(source.content_type, entry.locator.value)[1:]
        else:
            extension = file_extension(entry.locator.value)
        return TransformOutput(extension=extension, data=source.data or b"")

    def _folder(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        return TransformOutput(extension="", files=dict(source.files or {}))

    def _remote(self, entry: AssetManifestEntry, source: SourceInput) -> TransformOutput:
        url = entry.locator.value
        branch = _options(entry, RemoteOptions).as_kind
        if branch is RemoteKind.AUTO:
            branch = classify_content_type(source.content_type, url)
        else:
            validate_content_type(source.content_type, url, branch)
        logger.debug("Routing %s through the %s branch", url, branch.value)
        data = source.data or b""
        if branch is RemoteKind.IMAGE:
            return transform_image(data, ImageOptions(), preview_width=self.preview_width)
        if branch is RemoteKind.STYLESHEET:
            return transform_stylesheet(data, StylesheetOptions(), catalog=self.catalog)
        if branch is RemoteKind.SCRIPT:
            return transform_script(data, ScriptOptions())
        extension = extension_from_content_type(source.content_type, url)[1:]
        return TransformOutput(extension=extension, data=data)


def _options(entry: AssetManifestEntry, expected: type[_Options]) -> _Options:
    options = entry.options
    if not isinstance(options, expected):
        raise TypeError(
            f"{entry.kind.value} entry carries {type(options).__name__}, expected {expected.__name__}"
        )
    return options


Branch = Callable[[Pipeline, AssetManifestEntry, SourceInput], TransformOutput]

_BRANCHES: dict[AssetKind, Branch] = {
    AssetKind.IMAGE: Pipeline._image,
    AssetKind.STYLESHEET: Pipeline._stylesheet,
    AssetKind.SCRIPT: Pipeline._script,
    AssetKind.FILE: Pipeline._file,
    AssetKind.FOLDER: Pipeline._folder,
    AssetKind.REMOTE_URL: Pipeline._remote,
}

_missing = set(AssetKind) - set(_BRANCHES)
if _missing:  # pragma: no cover - guarded at import
    raise RuntimeError(f"No transform branch for asset kinds: {sorted(_missing)}")
