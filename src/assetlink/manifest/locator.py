"""Asset source locators."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePosixPath
from urllib.parse import urlencode, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
GOOGLE_FONTS_CSS_URL = "https://fonts.googleapis.com/css2"


class LocatorKind(StrEnum):
    """Where an asset's source bytes live."""

    FILE = "file"
    FOLDER = "folder"
    URL = "url"


@dataclass(frozen=True, slots=True)
class AssetLocator:
    """Immutable reference to an asset source."""

    kind: LocatorKind
    value: str

    @classmethod
    def parse(cls, text: str, *, folder: bool = False) -> AssetLocator:
        """Parse raw locator text, normalizing it on the way in."""

        if not isinstance(text, str) or not text.strip():
            raise ValueError("Asset locator must be a non-empty string.")
        raw = text.strip()
        scheme = urlsplit(raw).scheme.lower()
        if scheme in ("http", "https"):
            return cls(LocatorKind.URL, _canonical_url(raw))
        if "://" in raw:
            raise ValueError(f"Unsupported locator scheme: {raw!r}")
        kind = LocatorKind.FOLDER if folder else LocatorKind.FILE
        return cls(kind, _canonical_path(raw))

    @property
    def is_remote(self) -> bool:
        return self.kind is LocatorKind.URL

    def canonical(self) -> str:
        """Return the normalized text form used for identity hashing."""

        return f"{self.kind.value}:{self.value}"

    def resolve(self, root: Path) -> Path:
        """Resolve a local locator against ``root``."""

        if self.is_remote:
            raise ValueError(f"Remote locator {self.value!r} has no local path.")
        path = Path(self.value)
        return path if path.is_absolute() else root / path

    def basename(self) -> str:
        """Return the logical base name used in output file names."""

        if self.is_remote:
            parts = urlsplit(self.value)
            leaf = PurePosixPath(parts.path).name
            stem = PurePosixPath(leaf).stem if leaf else ""
            if not stem:
                stem = parts.hostname or "remote"
        else:
            leaf = PurePosixPath(self.value).name
            stem = leaf if self.kind is LocatorKind.FOLDER else PurePosixPath(leaf).stem
        cleaned = _UNSAFE_NAME_CHARS.sub("_", stem).strip("._")
        return cleaned or "asset"

    def suffix(self) -> str:
        """Return the lowercase extension of the locator, without the dot."""

        path = urlsplit(self.value).path if self.is_remote else self.value
        return PurePosixPath(path).suffix.lower().lstrip(".")

    def __str__(self) -> str:
        return self.value


def _canonical_path(raw: str) -> str:
    text = raw.replace("\\", "/")
    if re.match(r"^[A-Za-z]:/", text):
        drive, rest = text[:2], text[2:]
        return drive.upper() + posixpath.normpath(rest)
    normalized = posixpath.normpath(text)
    if text.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def _canonical_url(raw: str) -> str:
    parts = urlsplit(raw)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not host:
        raise ValueError(f"URL locator is missing a host: {raw!r}")
    port = parts.port
    netloc = host
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def google_fonts_url(
    families: list[str],
    weights: list[int] | None = None,
    text: str | None = None,
    display: str | None = None,
) -> str:
    """Build the Google Fonts stylesheet URL for a font request."""

    query: list[tuple[str, str]] = []
    for family in families:
        spec = family.strip()
        if weights:
            spec = f"{spec}:wght@{';'.join(str(weight) for weight in sorted(set(weights)))}"
        query.append(("family", spec))
    if text:
        query.append(("text", text))
    if display:
        query.append(("display", display))
    if not query:
        return GOOGLE_FONTS_CSS_URL
    return f"{GOOGLE_FONTS_CSS_URL}?{urlencode(query)}"
