"""Atomic placement of output files and directories."""

from __future__ import annotations

import os
import shutil
import tempfile
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

FILE_MODE = 0o644


@contextmanager
def atomic_path(target: Path, *, directory: bool = False) -> Iterator[Path]:
    """Yield a temporary sibling of ``target`` and rename it into place on success.

    The temporary file (or directory, with ``directory=True``) is removed when
    the body raises, so ``target`` is either absent, the previous version or
    the complete new version.
    """

    target.parent.mkdir(parents=True, exist_ok=True)
    prefix = f".{target.name}."
    if directory:
        temp = Path(tempfile.mkdtemp(prefix=prefix, suffix=".tmp", dir=target.parent))
    else:
        handle, name = tempfile.mkstemp(prefix=prefix, suffix=".tmp", dir=target.parent)
        os.close(handle)
        temp = Path(name)
    try:
        yield temp
        if directory:
            _replace_directory(temp, target)
        else:
            os.chmod(temp, FILE_MODE)
            os.replace(temp, target)
    except BaseException:
        _discard(temp)
        raise


def _replace_directory(temp: Path, target: Path) -> None:
    if not target.exists():
        os.replace(temp, target)
        return
    # A non-empty directory cannot be replaced in one step; move the old tree aside first.
    retired = target.with_name(f".{target.name}.{uuid.uuid4().hex}.old")
    os.replace(target, retired)
    try:
        os.replace(temp, target)
    except OSError:
        os.replace(retired, target)
        raise
    shutil.rmtree(retired, ignore_errors=True)


def _discard(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)
