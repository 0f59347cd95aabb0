"""HTTP fetcher for remote asset locators."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from assetlink.config import NetworkSettings
from assetlink.errors import (
    ConnectionFailed,
    HttpStatusError,
    InvalidUrl,
    NetworkTimeout,
    ResponseTooLarge,
    UnexpectedContentType,
)
from assetlink.manifest.options import RemoteKind
from assetlink.pipeline.base import FetchedResource

DEFAULT_USER_AGENT = "assetlink"

# Common MIME type to extension mapping for types not well-covered by mimetypes module
_MIME_EXTENSIONS: Dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/avif": ".avif",
    "text/css": ".css",
    "application/javascript": ".js",
    "text/javascript": ".js",
    "application/json": ".json",
    "font/woff": ".woff",
    "font/woff2": ".woff2",
    "font/ttf": ".ttf",
    "font/otf": ".otf",
    "application/font-woff": ".woff",
    "application/font-woff2": ".woff2",
}

_KIND_MAP: Dict[str, RemoteKind] = {
    "text/css": RemoteKind.STYLESHEET,
    "application/javascript": RemoteKind.SCRIPT,
    "text/javascript": RemoteKind.SCRIPT,
    "application/x-javascript": RemoteKind.SCRIPT,
}

# SVG is markup, not raster data; it is copied like any other file.
_VECTOR_IMAGES = {"image/svg+xml"}

_SUFFIX_KINDS: Dict[str, RemoteKind] = {
    ".png": RemoteKind.IMAGE,
    ".jpg": RemoteKind.IMAGE,
    ".jpeg": RemoteKind.IMAGE,
    ".gif": RemoteKind.IMAGE,
    ".webp": RemoteKind.IMAGE,
    ".avif": RemoteKind.IMAGE,
    ".css": RemoteKind.STYLESHEET,
    ".js": RemoteKind.SCRIPT,
    ".mjs": RemoteKind.SCRIPT,
}


def _media_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    return content_type.split(";")[0].strip().lower() or None


def extension_from_content_type(content_type: Optional[str], url: str) -> str:
    """Determine file extension from Content-Type header, falling back to URL path."""
    mime = _media_type(content_type)
    if mime:
        ext = _MIME_EXTENSIONS.get(mime)
        if ext:
            return ext
        guessed = mimetypes.guess_extension(mime)
        if guessed:
            return guessed

    url_path = url.split("?")[0].split("#")[0]
    if "." in url_path.split("/")[-1]:
        ext = "." + url_path.split("/")[-1].rsplit(".", 1)[-1].lower()
        if len(ext) <= 6:  # reasonable extension length
            return ext

    return ".bin"


def classify_content_type(content_type: Optional[str], url: str) -> RemoteKind:
    """Pick the transform branch for a remote body."""
    mime = _media_type(content_type)
    if mime:
        kind = _KIND_MAP.get(mime)
        if kind is not None:
            return kind
        if mime.startswith("image/") and mime not in _VECTOR_IMAGES:
            return RemoteKind.IMAGE
        return RemoteKind.FILE
    return _SUFFIX_KINDS.get(extension_from_content_type(None, url), RemoteKind.FILE)


def validate_content_type(content_type: Optional[str], url: str, expected: RemoteKind) -> None:
    """Reject bodies whose declared type contradicts the requested branch.

    A missing Content-Type header is accepted for every branch.
    """
    mime = _media_type(content_type)
    if mime is None or expected is RemoteKind.FILE:
        return
    if expected is RemoteKind.IMAGE:
        allowed = mime.startswith("image/") and mime not in _VECTOR_IMAGES
    elif expected is RemoteKind.STYLESHEET:
        allowed = mime in ("text/css", "text/plain")
    elif expected is RemoteKind.SCRIPT:
        allowed = _KIND_MAP.get(mime) is RemoteKind.SCRIPT or mime == "text/plain"
    else:
        allowed = True
    if not allowed:
        raise UnexpectedContentType(
            f"Expected {expected.value} content for {url}, got {mime}",
            url=url,
        )


@dataclass(slots=True)
class HttpFetcher:
    """Blocking fetcher for remote assets via HTTP streaming."""

    logger: logging.Logger
    timeout: float = 30.0
    max_size_bytes: int = 50_000_000  # 50 MB
    user_agent: str = DEFAULT_USER_AGENT
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    def fetch(self, url: str, *, timeout: Optional[float] = None) -> FetchedResource:
        """Download ``url`` and return its body, classifying every failure."""
        if not url.lower().startswith(("http://", "https://")):
            raise InvalidUrl(f"Unsupported URL {url!r}", url=url)
        try:
            with httpx.Client(
                follow_redirects=True,
                timeout=timeout or self.timeout,
                headers={"User-Agent": self.user_agent},
                transport=self.transport,
            ) as client:
                with client.stream("GET", url) as response:
                    if response.status_code >= 400:
                        raise HttpStatusError(response.status_code, url=url)

                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > self.max_size_bytes:
                        raise ResponseTooLarge(
                            f"Response of {declared} bytes exceeds {self.max_size_bytes} for {url}",
                            url=url,
                        )

                    chunks: list[bytes] = []
                    total_bytes = 0
                    for chunk in response.iter_bytes(chunk_size=65536):
                        total_bytes += len(chunk)
                        if total_bytes > self.max_size_bytes:
                            raise ResponseTooLarge(
                                f"Response exceeds {self.max_size_bytes} bytes for {url}",
                                url=url,
                            )
                        chunks.append(chunk)

                    self.logger.debug(
                        "Fetched %s (%s bytes, status %s)", url, total_bytes, response.status_code
                    )
                    return FetchedResource(
                        url=str(response.url),
                        data=b"".join(chunks),
                        content_type=response.headers.get("content-type"),
                        headers=dict(response.headers),
                    )

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise InvalidUrl(f"Invalid URL {url!r}: {exc}", url=url) from exc
        except httpx.TimeoutException as exc:
            raise NetworkTimeout(f"Timeout fetching {url}: {exc}", url=url) from exc
        except httpx.ConnectError as exc:
            raise ConnectionFailed(f"Connection error for {url}: {exc}", url=url) from exc
        except httpx.HTTPError as exc:
            raise ConnectionFailed(f"HTTP error for {url}: {exc}", url=url) from exc

    @classmethod
    def from_settings(cls, logger: logging.Logger, settings: NetworkSettings) -> "HttpFetcher":
        """Create an HttpFetcher from the network configuration section."""
        return cls(
            logger=logger,
            timeout=settings.timeout_seconds,
            max_size_bytes=settings.max_size_bytes,
            user_agent=settings.user_agent,
        )
