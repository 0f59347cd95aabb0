"""WebAssembly custom section lookup."""

from __future__ import annotations

from assetlink.errors import CorruptManifest, UnsupportedArtifact

WASM_MAGIC = b"\0asm"
_MODULE_VERSION = b"\x01\x00\x00\x00"
_CUSTOM_SECTION = 0


def is_wasm(data: bytes) -> bool:
    return data[:4] == WASM_MAGIC


def find_sections(data: bytes, name: str) -> list[bytes]:
    """Return the payload of every custom section called ``name``, in module order."""

    if data[4:8] != _MODULE_VERSION:
        raise UnsupportedArtifact(f"Unsupported WebAssembly binary version {data[4:8].hex()}")
    wanted = name.encode("utf-8")
    found: list[bytes] = []
    offset = 8
    while offset < len(data):
        section_id = data[offset]
        size, offset = _read_leb128(data, offset + 1)
        end = offset + size
        if end > len(data):
            raise CorruptManifest(f"WebAssembly section {section_id} exceeds module size")
        if section_id == _CUSTOM_SECTION:
            name_length, name_start = _read_leb128(data, offset)
            payload_start = name_start + name_length
            if payload_start > end:
                raise CorruptManifest("WebAssembly custom section name exceeds section")
            if data[name_start:payload_start] == wanted:
                found.append(data[payload_start:end])
        offset = end
    return found


def _read_leb128(data: bytes, offset: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise CorruptManifest("Truncated LEB128 value")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7
        if shift > 35:
            raise CorruptManifest("LEB128 value is too long")
