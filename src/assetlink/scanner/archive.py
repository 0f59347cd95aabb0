"""Static library (``ar``) member iteration for ``.a``/``.lib``/``.rlib`` files."""

from __future__ import annotations

from collections.abc import Iterator

from assetlink.errors import CorruptManifest

AR_MAGIC = b"!<arch>\n"
_HEADER_SIZE = 60


def is_archive(data: bytes) -> bool:
    return data.startswith(AR_MAGIC)


def iter_members(data: bytes) -> Iterator[tuple[str, bytes]]:
    """Yield ``(name, contents)`` for each regular member, in archive order."""

    offset = len(AR_MAGIC)
    long_names = b""
    while offset < len(data):
        if data[offset : offset + 1] == b"\n":
            offset += 1
            continue
        member_offset = offset
        header = data[offset : offset + _HEADER_SIZE]
        if len(header) < _HEADER_SIZE or header[58:60] != b"`\n":
            raise CorruptManifest(f"Malformed archive member header at offset {member_offset}")
        raw_name = header[0:16].decode("utf-8", errors="replace").rstrip()
        size = _decimal(header[48:58].decode("ascii", errors="replace"), member_offset)
        start = offset + _HEADER_SIZE
        end = start + size
        if end > len(data):
            raise CorruptManifest(f"Archive member at offset {member_offset} exceeds file size")
        body = data[start:end]
        offset = end + (size & 1)

        if raw_name == "//":
            long_names = body
            continue
        if raw_name in ("/", "/SYM64/", "__.SYMDEF", "__.SYMDEF SORTED"):
            continue
        if raw_name.startswith("#1/"):
            name_length = _decimal(raw_name[3:], member_offset)
            if name_length > len(body):
                raise CorruptManifest(f"Archive member name at offset {member_offset} exceeds member size")
            name = body[:name_length].rstrip(b"\0").decode("utf-8", errors="replace")
            body = body[name_length:]
            if name.startswith("__.SYMDEF"):
                continue
        elif raw_name.startswith("/") and raw_name[1:].isascii() and raw_name[1:].isdigit():
            index = int(raw_name[1:])
            terminator = long_names.find(b"\n", index)
            entry = long_names[index:terminator] if terminator >= 0 else long_names[index:]
            name = entry.decode("utf-8", errors="replace").rstrip("/")
        else:
            name = raw_name.rstrip("/")
        yield name, body


def _decimal(field: str, offset: int) -> int:
    # Header numbers are unsigned ASCII decimals padded with spaces.
    text = field.strip()
    if not (text.isascii() and text.isdigit()):
        raise CorruptManifest(f"Invalid archive header number {text!r} at offset {offset}")
    return int(text)
