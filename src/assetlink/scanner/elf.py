"""ELF section lookup."""

from __future__ import annotations

import struct

from assetlink.errors import CorruptManifest

ELF_MAGIC = b"\x7fELF"
_SHT_NOBITS = 8
_SHN_XINDEX = 0xFFFF


def find_sections(data: bytes, name: str) -> list[bytes]:
    """Return the contents of every ELF section called ``name``, in table order."""

    if len(data) < 16:
        raise CorruptManifest("Truncated ELF identification")
    elf_class, encoding = data[4], data[5]
    if elf_class not in (1, 2) or encoding not in (1, 2):
        raise CorruptManifest(f"Unknown ELF class/encoding {elf_class}/{encoding}")
    endian = "<" if encoding == 1 else ">"
    is_64 = elf_class == 2

    header_fmt = endian + ("HHIQQQIHHHHHH" if is_64 else "HHIIIIIHHHHHH")
    section_fmt = endian + ("IIQQQQIIQQ" if is_64 else "IIIIIIIIII")
    section_size = struct.calcsize(section_fmt)

    try:
        fields = struct.unpack_from(header_fmt, data, 16)
    except struct.error as exc:
        raise CorruptManifest("Truncated ELF header") from exc
    shoff, shentsize, shnum, shstrndx = fields[5], fields[10], fields[11], fields[12]
    if shoff == 0:
        return []
    if shentsize < section_size:
        raise CorruptManifest(f"ELF section header size {shentsize} is too small")

    def header(index: int) -> tuple[int, ...]:
        offset = shoff + index * shentsize
        try:
            return struct.unpack_from(section_fmt, data, offset)
        except struct.error as exc:
            raise CorruptManifest(f"ELF section header {index} is out of bounds") from exc

    if shnum == 0 or shstrndx == _SHN_XINDEX:
        first = header(0)
        if shnum == 0:
            shnum = first[5]
        if shstrndx == _SHN_XINDEX:
            shstrndx = first[6]

    if shstrndx >= shnum:
        raise CorruptManifest("ELF section name table index is out of range")
    strtab_header = header(shstrndx)
    strtab = _slice(data, strtab_header[4], strtab_header[5])
    wanted = name.encode("utf-8")

    found: list[bytes] = []
    for index in range(shnum):
        sh_name, sh_type, _flags, _addr, sh_offset, sh_size = header(index)[:6]
        end = strtab.find(b"\0", sh_name)
        if end < 0:
            raise CorruptManifest(f"ELF section {index} name is not terminated")
        if strtab[sh_name:end] != wanted or sh_type == _SHT_NOBITS:
            continue
        found.append(_slice(data, sh_offset, sh_size))
    return found


def _slice(data: bytes, offset: int, size: int) -> bytes:
    if offset + size > len(data):
        raise CorruptManifest(f"ELF section at {offset}+{size} exceeds file size {len(data)}")
    return data[offset : offset + size]
