"""Artifact scanners for embedded asset manifests."""

from .artifact import (
    PE_SECTION_NAME,
    SECTION_NAME,
    ArtifactFormat,
    scan_artifact,
    scan_path,
    sniff_format,
)

__all__ = [
    "ArtifactFormat",
    "PE_SECTION_NAME",
    "SECTION_NAME",
    "scan_artifact",
    "scan_path",
    "sniff_format",
]
