"""Locate the embedded asset manifest region of a compiled artifact."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

from assetlink.errors import ReadFailed, ScanError, UnsupportedArtifact
from assetlink.scanner import archive, elf, macho, pe, wasm

logger = logging.getLogger(__name__)

SECTION_NAME = "assetlink"
# PE section names are limited to eight bytes.
PE_SECTION_NAME = "alink"


class ArtifactFormat(StrEnum):
    ELF = "elf"
    MACHO = "macho"
    PE = "pe"
    COFF = "coff"
    WASM = "wasm"
    ARCHIVE = "archive"


SectionFinder = Callable[[bytes], list[bytes]]

_FINDERS: dict[ArtifactFormat, SectionFinder] = {
    ArtifactFormat.ELF: lambda data: elf.find_sections(data, SECTION_NAME),
    ArtifactFormat.MACHO: lambda data: macho.find_sections(data, SECTION_NAME),
    ArtifactFormat.PE: lambda data: pe.find_sections(data, PE_SECTION_NAME),
    ArtifactFormat.COFF: lambda data: pe.find_sections(data, PE_SECTION_NAME),
    ArtifactFormat.WASM: lambda data: wasm.find_sections(data, SECTION_NAME),
}


def sniff_format(data: bytes) -> ArtifactFormat:
    """Identify the container format from the leading bytes."""

    if data.startswith(elf.ELF_MAGIC):
        return ArtifactFormat.ELF
    if wasm.is_wasm(data):
        return ArtifactFormat.WASM
    if archive.is_archive(data):
        return ArtifactFormat.ARCHIVE
    if macho.is_macho(data):
        return ArtifactFormat.MACHO
    if pe.is_pe(data):
        return ArtifactFormat.PE
    if pe.is_coff_object(data):
        return ArtifactFormat.COFF
    raise UnsupportedArtifact(f"Unrecognized artifact format (leading bytes {data[:8].hex()})")


def scan_artifact(data: bytes) -> bytes:
    """Return the concatenated manifest regions of one artifact.

    An artifact without the region yields ``b""``.
    """

    artifact_format = sniff_format(data)
    if artifact_format is ArtifactFormat.ARCHIVE:
        return b"".join(_scan_members(data))
    return b"".join(_FINDERS[artifact_format](data))


def scan_path(path: Path) -> bytes:
    """Read and scan an artifact from disk."""

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ReadFailed(f"Unable to read artifact {path}: {exc}", path=str(path)) from exc
    try:
        return scan_artifact(data)
    except ScanError as exc:
        exc.artifact = str(path)
        raise


def _scan_members(data: bytes) -> list[bytes]:
    regions: list[bytes] = []
    for name, body in archive.iter_members(data):
        try:
            member_format = sniff_format(body)
        except UnsupportedArtifact:
            logger.debug("Skipping archive member %s with unknown format", name)
            continue
        if member_format is ArtifactFormat.ARCHIVE:
            logger.debug("Skipping nested archive member %s", name)
            continue
        regions.extend(_FINDERS[member_format](body))
    return regions
