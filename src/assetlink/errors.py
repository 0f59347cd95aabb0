"""Error taxonomy for assetlink."""

from __future__ import annotations

from typing import Any, ClassVar


class AssetLinkError(Exception):
    """Base class for all assetlink errors."""

    kind: ClassVar[str] = "Error"


class ScanError(AssetLinkError):
    """Raised when an artifact cannot contribute its manifest."""

    def __init__(self, message: str, *, artifact: str | None = None) -> None:
        super().__init__(message)
        self.artifact = artifact


class UnsupportedArtifact(ScanError):
    """The artifact is not a container format assetlink understands."""

    kind = "Unsupported"


class CorruptManifest(ScanError):
    """The container or the embedded payload is malformed."""

    kind = "Corrupt"


class RegistryError(AssetLinkError):
    """Raised when manifests cannot be merged."""


class RegistryConflict(RegistryError):
    """Two different requests map to the same asset identifier."""

    kind = "Conflict"

    def __init__(self, identifier: str, existing: Any, incoming: Any) -> None:
        super().__init__(
            f"Conflicting asset requests for {identifier}: {existing!r} != {incoming!r}"
        )
        self.identifier = identifier
        self.existing = existing
        self.incoming = incoming


class TransformError(AssetLinkError):
    """Raised when an asset transform fails."""


class DecodeFailed(TransformError):
    kind = "DecodeFailed"


class UnsupportedConversion(TransformError):
    kind = "UnsupportedConversion"


class EncodeFailed(TransformError):
    kind = "EncodeFailed"


class NetworkError(AssetLinkError):
    """Raised when fetching a remote asset fails.

    ``retryable`` tells a caller-side retry policy whether trying again can help.
    assetlink never retries on its own.
    """

    kind = "Network"
    retryable: ClassVar[bool] = False

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NetworkTimeout(NetworkError):
    kind = "Timeout"
    retryable = True


class ConnectionFailed(NetworkError):
    kind = "ConnectionFailed"
    retryable = True


class HttpStatusError(NetworkError):
    """Non-success HTTP status; 5xx and 429 are retryable."""

    kind = "HttpStatus"

    def __init__(self, status_code: int, *, url: str | None = None) -> None:
        super().__init__(f"HTTP {status_code} for {url}", url=url)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500 or self.status_code == 429


class InvalidUrl(NetworkError):
    kind = "InvalidUrl"


class UnexpectedContentType(NetworkError):
    kind = "UnexpectedContentType"


class ResponseTooLarge(NetworkError):
    kind = "ResponseTooLarge"


class AssetIOError(AssetLinkError):
    """Raised when reading sources or writing outputs fails."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ReadFailed(AssetIOError):
    kind = "ReadFailed"


class WriteFailed(AssetIOError):
    kind = "WriteFailed"


__all__ = [
    "AssetIOError",
    "AssetLinkError",
    "ConnectionFailed",
    "CorruptManifest",
    "DecodeFailed",
    "EncodeFailed",
    "HttpStatusError",
    "InvalidUrl",
    "NetworkError",
    "NetworkTimeout",
    "ReadFailed",
    "RegistryConflict",
    "RegistryError",
    "ResponseTooLarge",
    "ScanError",
    "TransformError",
    "UnexpectedContentType",
    "UnsupportedArtifact",
    "UnsupportedConversion",
    "WriteFailed",
]
