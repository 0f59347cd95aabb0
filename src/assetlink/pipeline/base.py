"""Shared pipeline value types and capabilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(slots=True)
class TransformOutput:
    """Result of one transform branch.

    Exactly one of ``data`` (single file) or ``files`` (folder tree keyed by
    relative POSIX path) is set.
    """

    extension: str
    data: bytes | None = None
    files: dict[str, bytes] | None = None
    mime: str | None = None
    preview: str | None = None
    data_url: str | None = None

    @property
    def is_tree(self) -> bool:
        return self.files is not None

    @property
    def byte_size(self) -> int:
        if self.files is not None:
            return sum(len(body) for body in self.files.values())
        return len(self.data or b"")


@dataclass(slots=True)
class FetchedResource:
    url: str
    data: bytes
    content_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def media_type(self) -> str | None:
        if not self.content_type:
            return None
        return self.content_type.split(";", 1)[0].strip().lower() or None


class Fetcher(Protocol):
    """Blocking fetch capability used by the pipeline for remote locators."""

    def fetch(self, url: str, *, timeout: float | None = None) -> FetchedResource: ...


@dataclass(slots=True)
class SourceInput:
    """Bytes (or a file tree) gathered for one entry before transformation."""

    data: bytes | None = None
    files: dict[str, bytes] | None = None
    content_type: str | None = None
