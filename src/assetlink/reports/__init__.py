"""Build report writers."""

from .manifest import write_build_report, write_manifest

__all__ = ["write_build_report", "write_manifest"]
