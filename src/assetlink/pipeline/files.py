"""Byte-identical copies of single files and folder trees."""

from __future__ import annotations

from pathlib import Path

from assetlink.errors import ReadFailed


def read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ReadFailed(f"Unable to read {path}: {exc}", path=str(path)) from exc


def read_tree(root: Path, *, include_hidden: bool = False) -> dict[str, bytes]:
    """Return every file below ``root`` keyed by its relative POSIX path.

    Entries are sorted. Hidden files and directories (leading ``.``) are
    skipped unless ``include_hidden`` is set.
    """

    if not root.is_dir():
        raise ReadFailed(f"Folder not found: {root}", path=str(root))
    files: dict[str, bytes] = {}
    try:
        candidates = sorted(root.rglob("*"))
    except OSError as exc:
        raise ReadFailed(f"Unable to list {root}: {exc}", path=str(root)) from exc
    for path in candidates:
        relative = path.relative_to(root)
        if not include_hidden and any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            files[relative.as_posix()] = read_file(path)
    return files


def file_extension(name: str) -> str:
    """Extension of ``name`` without the dot, or ``bin`` when it has none."""

    suffix = Path(name).suffix
    return suffix[1:].lower() if suffix else "bin"
