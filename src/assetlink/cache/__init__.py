"""Output cache: atomic writes, fingerprint index and output store."""

from .atomic import atomic_path
from .index import CacheIndex, OutputRecord, RunRecord
from .store import AssetCache, FileSystemOutputStore, OutputStore

__all__ = [
    "AssetCache",
    "CacheIndex",
    "FileSystemOutputStore",
    "OutputRecord",
    "OutputStore",
    "RunRecord",
    "atomic_path",
]
