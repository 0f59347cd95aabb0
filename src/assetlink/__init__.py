"""assetlink: collect assets declared by compiled artifacts and emit optimized outputs."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from importlib import metadata
from pathlib import Path

DISTRIBUTION = "assetlink"


def _checkout_version() -> str | None:
    """Read ``[project].version`` from a source checkout, if there is one."""

    here = Path(__file__).resolve().parent
    for directory in here.parents:
        pyproject = directory / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            project = tomllib.loads(pyproject.read_text(encoding="utf-8")).get("project", {})
        except (OSError, tomllib.TOMLDecodeError):  # pragma: no cover - unreadable checkout
            return None
        if not isinstance(project, dict) or project.get("name") != DISTRIBUTION:
            return None
        version = project.get("version")
        return version.strip() if isinstance(version, str) and version.strip() else None
    return None


@lru_cache(maxsize=1)
def get_version() -> str:
    """Return the assetlink version, preferring the checkout's pyproject."""

    version = _checkout_version()
    if version is not None:
        return version
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError as exc:  # pragma: no cover - occurs in dev
        raise RuntimeError("Unable to determine assetlink version.") from exc


__all__ = ["DISTRIBUTION", "get_version"]
