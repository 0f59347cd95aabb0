"""PE image and COFF object section lookup."""

from __future__ import annotations

import struct

from assetlink.errors import CorruptManifest

_COFF_HEADER = struct.Struct("<HHIIIHH")
_SECTION = struct.Struct("<8sIIIIIIHHI")
# x86, x86-64, ARM (thumb), ARM64
_COFF_MACHINES = {0x14C, 0x8664, 0x1C4, 0xAA64}


def is_pe(data: bytes) -> bool:
    return data[:2] == b"MZ"


def is_coff_object(data: bytes) -> bool:
    if len(data) < _COFF_HEADER.size:
        return False
    machine, _sections, _stamp, _symtab, _symbols, optional_size, _chars = _COFF_HEADER.unpack_from(
        data, 0
    )
    return machine in _COFF_MACHINES and optional_size == 0


def find_sections(data: bytes, name: str) -> list[bytes]:
    """Return every section called ``name`` (or ``name$suffix``), in table order."""

    if is_pe(data):
        try:
            (pe_offset,) = struct.unpack_from("<I", data, 0x3C)
        except struct.error as exc:
            raise CorruptManifest("Truncated DOS header") from exc
        if data[pe_offset : pe_offset + 4] != b"PE\0\0":
            raise CorruptManifest("Missing PE signature")
        coff_offset = pe_offset + 4
        image = True
    else:
        coff_offset = 0
        image = False

    try:
        _machine, nsections, _stamp, symtab, nsymbols, optional_size, _chars = (
            _COFF_HEADER.unpack_from(data, coff_offset)
        )
    except struct.error as exc:
        raise CorruptManifest("Truncated COFF header") from exc

    table = coff_offset + _COFF_HEADER.size + optional_size
    string_table = symtab + nsymbols * 18 if symtab else 0
    found: list[bytes] = []
    for index in range(nsections):
        try:
            fields = _SECTION.unpack_from(data, table + index * _SECTION.size)
        except struct.error as exc:
            raise CorruptManifest(f"Truncated section header {index}") from exc
        raw_name, virtual_size, _vaddr, raw_size, raw_pointer = fields[:5]
        section_name = _section_name(data, raw_name, string_table)
        if section_name != name and not section_name.startswith(f"{name}$"):
            continue
        if raw_pointer == 0 or raw_size == 0:
            continue
        size = min(virtual_size, raw_size) if image and virtual_size else raw_size
        if raw_pointer + size > len(data):
            raise CorruptManifest(f"Section {section_name!r} exceeds file size")
        found.append(data[raw_pointer : raw_pointer + size])
    return found


def _section_name(data: bytes, raw_name: bytes, string_table: int) -> str:
    text = raw_name.rstrip(b"\0").decode("utf-8", errors="replace")
    if text.startswith("/") and text[1:].isdigit() and string_table:
        start = string_table + int(text[1:])
        end = data.find(b"\0", start)
        if end < 0:
            raise CorruptManifest("Unterminated long section name")
        return data[start:end].decode("utf-8", errors="replace")
    return text
