"""Tests for atomic writes, the SQLite index and the fingerprint cache."""

from __future__ import annotations

import os

import pytest

from assetlink.cache import AssetCache, CacheIndex, FileSystemOutputStore, OutputRecord, atomic_path
from assetlink.manifest import AssetManifestEntry, content_hash
from assetlink.pipeline import TransformOutput


def _hidden_siblings(directory):
    return [path.name for path in directory.iterdir() if path.name.startswith(".")]


class TestAtomicPath:
    def test_file_is_renamed_into_place(self, tmp_path):
        target = tmp_path / "out" / "a.txt"
        with atomic_path(target) as temp:
            temp.write_bytes(b"new")
            assert not target.exists()
        assert target.read_bytes() == b"new"
        assert oct(os.stat(target).st_mode & 0o777) == oct(0o644)
        assert _hidden_siblings(target.parent) == []

    def test_failure_leaves_previous_version(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_bytes(b"old")
        with pytest.raises(RuntimeError):
            with atomic_path(target) as temp:
                temp.write_bytes(b"partial")
                raise RuntimeError("interrupted")
        assert target.read_bytes() == b"old"
        assert _hidden_siblings(tmp_path) == []

    def test_directory_replaces_existing_tree(self, tmp_path):
        target = tmp_path / "static-abc"
        target.mkdir()
        (target / "stale.txt").write_bytes(b"stale")
        with atomic_path(target, directory=True) as temp:
            (temp / "fresh.txt").write_bytes(b"fresh")
        assert sorted(path.name for path in target.iterdir()) == ["fresh.txt"]
        assert _hidden_siblings(tmp_path) == []


class TestCacheIndex:
    def test_record_lookup_forget(self, tmp_path):
        index = CacheIndex(tmp_path / ".assetlink" / "index.sqlite")
        index.initialize()
        record = OutputRecord("fp", "id", "a-0123456789abcdef.txt", "0123456789abcdef", 3)

        index.record(record)
        assert index.lookup("fp") == record
        assert index.count_outputs() == 1

        index.forget("fp")
        assert index.lookup("fp") is None

    def test_runs(self, tmp_path):
        index = CacheIndex(tmp_path / "index.sqlite")
        index.initialize()
        run = index.start_run(artifacts=2)
        index.finish_run(run.id, "completed", {"transformed": 1})

        (latest,) = index.list_recent_runs()
        assert latest.status == "completed"
        assert latest.artifacts == 2
        assert latest.stats == {"transformed": 1}
        assert latest.completed_at is not None


def _cache(tmp_path, **kwargs) -> AssetCache:
    index = CacheIndex(tmp_path / ".assetlink" / "index.sqlite")
    index.initialize()
    return AssetCache(FileSystemOutputStore(tmp_path), index, **kwargs)


def _stored(cache: AssetCache, data: bytes = b"payload") -> OutputRecord:
    digest = content_hash(data)
    name = f"a-{digest}.txt"
    cache.write(name, TransformOutput(extension="txt", data=data))
    record = OutputRecord("fp", "id", name, digest, len(data))
    cache.record(record)
    return record


class TestAssetCache:
    def test_hit(self, tmp_path):
        cache = _cache(tmp_path)
        record = _stored(cache)
        assert cache.lookup("fp") == record

    def test_missing_output_is_a_miss(self, tmp_path):
        cache = _cache(tmp_path)
        record = _stored(cache)
        (tmp_path / record.output_name).unlink()
        assert cache.lookup("fp") is None
        assert cache.index.lookup("fp") is None

    def test_tampered_output_is_a_miss(self, tmp_path):
        cache = _cache(tmp_path)
        record = _stored(cache, b"payload")
        (tmp_path / record.output_name).write_bytes(b"PAYLOAD")
        assert cache.lookup("fp") is None

    def test_tampering_ignored_without_verification(self, tmp_path):
        cache = _cache(tmp_path, verify_content=False)
        record = _stored(cache, b"payload")
        (tmp_path / record.output_name).write_bytes(b"PAYLOAD")
        assert cache.lookup("fp") == record

    def test_disabled_cache(self, tmp_path):
        cache = AssetCache(FileSystemOutputStore(tmp_path), None)
        assert not cache.enabled
        assert cache.lookup("fp") is None

    def test_tree_output(self, tmp_path):
        cache = _cache(tmp_path)
        files = {"a.txt": b"a", "sub/b.txt": b"b"}
        cache.write("static-0000", TransformOutput(extension="", files=files))
        assert (tmp_path / "static-0000" / "sub" / "b.txt").read_bytes() == b"b"
        assert cache.store.size("static-0000") == 2

    def test_fingerprint_covers_hints(self):
        plain = AssetManifestEntry.create("image", "a.png")
        hinted = AssetManifestEntry.create("image", "a.png", {"preview": True})
        assert AssetCache.fingerprint(plain, "d", "s") != AssetCache.fingerprint(hinted, "d", "s")
        assert AssetCache.fingerprint(plain, "d", "s") != AssetCache.fingerprint(plain, "e", "s")
