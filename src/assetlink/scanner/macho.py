"""Mach-O section lookup, including universal (fat) binaries."""

from __future__ import annotations

import struct

from assetlink.errors import CorruptManifest

MH_MAGIC = 0xFEEDFACE
MH_MAGIC_64 = 0xFEEDFACF
FAT_MAGIC = 0xCAFEBABE
FAT_MAGIC_64 = 0xCAFEBABF

_LC_SEGMENT = 0x1
_LC_SEGMENT_64 = 0x19
_ZEROFILL_TYPES = {0x1, 0xC, 0x12}
# Java class files share the fat magic; real universal binaries have few slices.
_MAX_FAT_ARCHES = 32


def is_macho(data: bytes) -> bool:
    if len(data) < 4:
        return False
    for endian in ("<", ">"):
        (magic,) = struct.unpack_from(endian + "I", data, 0)
        if magic in (MH_MAGIC, MH_MAGIC_64):
            return True
    return is_fat(data)


def is_fat(data: bytes) -> bool:
    if len(data) < 8:
        return False
    magic, count = struct.unpack_from(">II", data, 0)
    return magic in (FAT_MAGIC, FAT_MAGIC_64) and 0 < count <= _MAX_FAT_ARCHES


def find_sections(data: bytes, name: str) -> list[bytes]:
    """Return every section called ``name`` across all slices, in file order."""

    if is_fat(data):
        found: list[bytes] = []
        for offset, size in _fat_slices(data):
            found.extend(_thin_sections(data[offset : offset + size], name))
        return found
    return _thin_sections(data, name)


def _fat_slices(data: bytes) -> list[tuple[int, int]]:
    magic, count = struct.unpack_from(">II", data, 0)
    entry_fmt = ">iiQQII" if magic == FAT_MAGIC_64 else ">iiIII"
    entry_size = struct.calcsize(entry_fmt)
    slices: list[tuple[int, int]] = []
    for index in range(count):
        try:
            fields = struct.unpack_from(entry_fmt, data, 8 + index * entry_size)
        except struct.error as exc:
            raise CorruptManifest(f"Truncated fat architecture table entry {index}") from exc
        offset, size = fields[2], fields[3]
        if offset + size > len(data):
            raise CorruptManifest(f"Fat slice {index} exceeds file size")
        slices.append((offset, size))
    return slices


def _thin_sections(data: bytes, name: str) -> list[bytes]:
    if len(data) < 28:
        raise CorruptManifest("Truncated Mach-O header")
    endian = "<"
    (magic,) = struct.unpack_from("<I", data, 0)
    if magic not in (MH_MAGIC, MH_MAGIC_64):
        endian = ">"
        (magic,) = struct.unpack_from(">I", data, 0)
    if magic not in (MH_MAGIC, MH_MAGIC_64):
        raise CorruptManifest("Fat slice is not a Mach-O image")
    is_64 = magic == MH_MAGIC_64

    ncmds = struct.unpack_from(endian + "I", data, 16)[0]
    offset = 32 if is_64 else 28
    if is_64:
        segment_fmt = endian + "II16sQQQQiiII"
        section_fmt = endian + "16s16sQQIIIIIIII"
    else:
        segment_fmt = endian + "II16sIIIIiiII"
        section_fmt = endian + "16s16sIIIIIIIII"
    segment_size = struct.calcsize(segment_fmt)
    section_size = struct.calcsize(section_fmt)
    wanted = name.encode("utf-8")

    found: list[bytes] = []
    for index in range(ncmds):
        try:
            cmd, cmdsize = struct.unpack_from(endian + "II", data, offset)
        except struct.error as exc:
            raise CorruptManifest(f"Truncated Mach-O load command {index}") from exc
        if cmdsize < 8:
            raise CorruptManifest(f"Mach-O load command {index} has invalid size {cmdsize}")
        if cmd in (_LC_SEGMENT, _LC_SEGMENT_64):
            try:
                segment = struct.unpack_from(segment_fmt, data, offset)
            except struct.error as exc:
                raise CorruptManifest(f"Truncated Mach-O segment command {index}") from exc
            nsects = segment[9]
            for position in range(nsects):
                section_offset = offset + segment_size + position * section_size
                try:
                    section = struct.unpack_from(section_fmt, data, section_offset)
                except struct.error as exc:
                    raise CorruptManifest("Truncated Mach-O section header") from exc
                sectname = section[0].rstrip(b"\0")
                size = section[3]
                file_offset = section[4]
                flags = section[8]
                if sectname != wanted or (flags & 0xFF) in _ZEROFILL_TYPES:
                    continue
                if file_offset + size > len(data):
                    raise CorruptManifest(f"Mach-O section {sectname!r} exceeds file size")
                found.append(data[file_offset : file_offset + size])
        offset += cmdsize
    return found
