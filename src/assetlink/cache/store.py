"""Output store capability and the fingerprint cache built on it."""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from assetlink.cache.atomic import atomic_path
from assetlink.cache.index import CacheIndex, OutputRecord
from assetlink.errors import ReadFailed, WriteFailed
from assetlink.manifest.types import AssetManifestEntry, content_hash, tree_hash
from assetlink.pipeline.base import TransformOutput


class OutputStore(Protocol):
    """Where produced outputs live, addressed by output name."""

    def write(self, name: str, output: TransformOutput) -> None: ...

    def exists(self, name: str) -> bool: ...

    def size(self, name: str) -> int: ...

    def digest(self, name: str) -> str: ...

    def path_for(self, name: str) -> str: ...


class FileSystemOutputStore:
    """Output store rooted at a directory; every write is atomic."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, name: str) -> str:
        return str(self.root / name)

    def write(self, name: str, output: TransformOutput) -> None:
        target = self.root / name
        try:
            if output.files is not None:
                self._write_tree(target, output.files)
            else:
                with atomic_path(target) as temp:
                    temp.write_bytes(output.data or b"")
        except OSError as exc:
            raise WriteFailed(f"Unable to write {target}: {exc}", path=str(target)) from exc

    def exists(self, name: str) -> bool:
        return (self.root / name).exists()

    def size(self, name: str) -> int:
        target = self.root / name
        if target.is_dir():
            return sum(len(body) for body in _read_tree(target).values())
        return target.stat().st_size

    def digest(self, name: str) -> str:
        target = self.root / name
        if target.is_dir():
            return tree_hash(_read_tree(target).items())
        return content_hash(target.read_bytes())

    def _write_tree(self, target: Path, files: Mapping[str, bytes]) -> None:
        # Same name means same content hash; an existing complete tree is kept.
        if target.is_dir() and tree_hash(_read_tree(target).items()) == tree_hash(files.items()):
            return
        with atomic_path(target, directory=True) as temp:
            for relative, body in sorted(files.items()):
                destination = temp / relative
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_bytes(body)


class AssetCache:
    """Fingerprint-keyed reuse of previously produced outputs."""

    def __init__(
        self,
        store: OutputStore,
        index: CacheIndex | None,
        *,
        verify_content: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.index = index
        self.verify_content = verify_content
        self.logger = logger or logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return self.index is not None

    @staticmethod
    def fingerprint(entry: AssetManifestEntry, input_digest: str, signature: str) -> str:
        """Digest of kind, inputs, the full option set and the pipeline signature."""

        hasher = hashlib.sha256()
        for part in (
            entry.kind.value.encode("utf-8"),
            input_digest.encode("ascii"),
            entry.options.normalized(),
            signature.encode("ascii"),
        ):
            hasher.update(part)
            hasher.update(b"\0")
        return hasher.hexdigest()

    def lookup(self, fingerprint: str) -> OutputRecord | None:
        """Return the indexed output when it is still present and intact."""

        if self.index is None:
            return None
        try:
            record = self.index.lookup(fingerprint)
        except sqlite3.Error as exc:
            raise ReadFailed(f"Cache index unreadable: {exc}", path=str(self.index.path)) from exc
        if record is None:
            return None
        reason = self._stale_reason(record)
        if reason is not None:
            self.logger.debug("Cache miss for %s: %s", record.output_name, reason)
            self.index.forget(fingerprint)
            return None
        return record

    def write(self, name: str, output: TransformOutput) -> None:
        self.store.write(name, output)

    def record(self, record: OutputRecord) -> None:
        """Index an output; call only after the output has been written."""

        if self.index is None:
            return
        try:
            self.index.record(record)
        except sqlite3.Error as exc:
            raise WriteFailed(f"Cache index not writable: {exc}", path=str(self.index.path)) from exc

    def _stale_reason(self, record: OutputRecord) -> str | None:
        name = record.output_name
        if f"-{record.content_hash}" not in name:
            return "name does not embed the indexed hash"
        if not self.store.exists(name):
            return "output missing"
        try:
            if self.store.size(name) != record.byte_size:
                return "size changed"
            if self.verify_content and self.store.digest(name) != record.content_hash:
                return "content changed"
        except OSError as exc:
            return f"unreadable ({exc})"
        return None


def _read_tree(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }
