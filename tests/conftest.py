"""Shared fixtures: tiny struct-built artifacts and sample images."""

from __future__ import annotations

import io
import logging
import struct
from collections.abc import Iterable, Sequence
from pathlib import Path

import pytest
from PIL import Image

from assetlink.manifest import encode_records
from assetlink.manifest.types import ManifestRecord

ELF_SECTION = "assetlink"
PE_SECTION = "alink"


def build_elf(sections: Sequence[tuple[str, bytes]], *, big_endian: bool = False) -> bytes:
    """64-bit ELF relocatable object with the given named PROGBITS sections."""

    endian = ">" if big_endian else "<"
    names = [name for name, _ in sections] + [".shstrtab"]
    strtab = b"\0"
    name_offsets = []
    for name in names:
        name_offsets.append(len(strtab))
        strtab += name.encode("utf-8") + b"\0"

    body = bytearray(64)
    placed = []
    for _, data in sections:
        placed.append((len(body), len(data)))
        body += data
    strtab_offset = len(body)
    body += strtab
    while len(body) % 8:
        body += b"\0"
    shoff = len(body)

    section_fmt = endian + "IIQQQQIIQQ"
    headers = [struct.pack(section_fmt, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)]
    for index, (offset, size) in enumerate(placed):
        headers.append(struct.pack(section_fmt, name_offsets[index], 1, 0, 0, offset, size, 0, 0, 1, 0))
    headers.append(struct.pack(section_fmt, name_offsets[-1], 3, 0, 0, strtab_offset, len(strtab), 0, 0, 1, 0))
    body += b"".join(headers)

    ident = b"\x7fELF" + bytes([2, 2 if big_endian else 1, 1]) + b"\0" * 9
    header = struct.pack(
        endian + "HHIQQQIHHHHHH",
        1,  # ET_REL
        0x3E,
        1,
        0,
        0,
        shoff,
        0,
        64,
        0,
        0,
        64,
        len(headers),
        len(headers) - 1,
    )
    body[0:64] = ident + header
    return bytes(body)


def build_macho(sections: Sequence[tuple[str, bytes]]) -> bytes:
    """Thin little-endian 64-bit Mach-O with one ``__DATA`` segment."""

    segment_size = struct.calcsize("<II16sQQQQiiII")
    section_size = struct.calcsize("<16s16sQQIIIIIIII")
    cmdsize = segment_size + section_size * len(sections)
    data_start = 32 + cmdsize

    payload = b""
    section_headers = b""
    for name, data in sections:
        offset = data_start + len(payload)
        section_headers += struct.pack(
            "<16s16sQQIIIIIIII",
            name.encode("utf-8"),
            b"__DATA",
            0,
            len(data),
            offset,
            0,
            0,
            0,
            0,
            0,
            0,
            0,
        )
        payload += data
    segment = struct.pack(
        "<II16sQQQQiiII",
        0x19,
        cmdsize,
        b"__DATA",
        0,
        len(payload),
        data_start,
        len(payload),
        3,
        3,
        len(sections),
        0,
    )
    header = struct.pack("<IiiIIIII", 0xFEEDFACF, 0x01000007, 3, 1, 1, cmdsize, 0, 0)
    return header + segment + section_headers + payload


def build_fat_macho(slices: Sequence[bytes]) -> bytes:
    """Universal binary wrapping the given thin slices."""

    table = struct.pack(">II", 0xCAFEBABE, len(slices))
    offset = 8 + 20 * len(slices)
    offset = (offset + 15) & ~15
    entries = b""
    body = b""
    for thin in slices:
        entries += struct.pack(">iiIII", 0x01000007, 3, offset + len(body), len(thin), 4)
        body += thin
    header = table + entries
    return header + b"\0" * (offset - len(header)) + body


def build_pe(sections: Sequence[tuple[str, bytes]], *, image: bool = True) -> bytes:
    """PE image (or bare COFF object) with raw sections padded to 512 bytes."""

    coff_offset = 0x44 if image else 0
    table_offset = coff_offset + 20
    data_start = table_offset + 40 * len(sections)
    data_start = (data_start + 511) & ~511

    headers = b""
    body = b""
    for name, data in sections:
        raw_size = (len(data) + 511) & ~511
        headers += struct.pack(
            "<8sIIIIIIHHI",
            name.encode("utf-8"),
            len(data) if image else 0,
            0x1000,
            raw_size,
            data_start + len(body),
            0,
            0,
            0,
            0,
            0x40000040,
        )
        body += data + b"\0" * (raw_size - len(data))

    coff = struct.pack("<HHIIIHH", 0x8664, len(sections), 0, 0, 0, 0, 0x22 if image else 0)
    prefix = b""
    if image:
        dos = bytearray(0x40)
        dos[0:2] = b"MZ"
        dos[0x3C:0x40] = struct.pack("<I", 0x40)
        prefix = bytes(dos) + b"PE\0\0"
    head = prefix + coff + headers
    return head + b"\0" * (data_start - len(head)) + body


def _leb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def build_wasm(sections: Sequence[tuple[str, bytes]]) -> bytes:
    """Wasm module with an empty type section followed by custom sections."""

    module = b"\0asm\x01\x00\x00\x00"
    module += b"\x01" + _leb128(1) + b"\x00"
    for name, data in sections:
        encoded = name.encode("utf-8")
        content = _leb128(len(encoded)) + encoded + data
        module += b"\x00" + _leb128(len(content)) + content
    return module


def build_archive(members: Sequence[tuple[str, bytes]]) -> bytes:
    """GNU-style ``ar`` archive including a symbol table member."""

    def member(name: str, data: bytes) -> bytes:
        header = (
            f"{name:<16}".encode("ascii")
            + b"0".ljust(12)
            + b"0".ljust(6)
            + b"0".ljust(6)
            + b"644".ljust(8)
            + str(len(data)).encode("ascii").ljust(10)
            + b"`\n"
        )
        return header + data + (b"\n" if len(data) % 2 else b"")

    archive = b"!<arch>\n" + member("/", b"\0\0\0\0")
    for name, data in members:
        archive += member(f"{name}/", data)
    return archive


def png_bytes(size: tuple[int, int] = (64, 48), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


def noisy_png_bytes(size: tuple[int, int] = (96, 96)) -> bytes:
    """PNG with enough detail that lossy encoders respond to quality."""

    image = Image.effect_noise(size, 64).convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


def write_artifact(path: Path, records: Iterable[ManifestRecord]) -> Path:
    """Write an ELF object embedding ``records`` to ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(build_elf([(ELF_SECTION, encode_records(records))]))
    return path


@pytest.fixture
def logger() -> logging.Logger:
    test_logger = logging.getLogger("assetlink.tests")
    test_logger.setLevel(logging.DEBUG)
    return test_logger
