"""Manifest JSON and Markdown build report writers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from assetlink.cache import atomic_path
from assetlink.core.engine import BuildResult


def write_manifest(result: BuildResult, path: Path) -> None:
    """Write the identifier -> output manifest as JSON."""

    payload = json.dumps(result.manifest(), indent=2, sort_keys=True, ensure_ascii=False)
    with atomic_path(path) as temp:
        temp.write_text(payload + "\n", encoding="utf-8")


def write_build_report(result: BuildResult, path: Path) -> None:
    """Generate a Markdown summary of one build."""

    stats = result.stats
    generated_at = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    lines = ["# assetlink Build", "", f"Generated: {generated_at}", ""]
    lines.append(f"Status: {'ok' if result.ok else 'failed'}")
    lines.append("")
    lines.append("## Summary")
    lines.extend(
        [
            f"- Artifacts: {stats.artifacts} ({stats.skipped_artifacts} skipped)",
            f"- Unique assets: {stats.entries} ({stats.duplicates} duplicate request(s) collapsed)",
            f"- Transformed: {stats.transformed}",
            f"- Cached: {stats.cached}",
            f"- Failed: {stats.failed}",
        ]
    )
    if result.io_alert:
        lines.append("- I/O alert: repeated read/write failures")
    lines.append("")

    if result.assets:
        lines.append("## Assets")
        for asset in result.assets:
            origin = "cached" if asset.cached else "built"
            lines.append(
                f"- `{asset.output_path}` <- {asset.locator} ({asset.kind.value}, "
                f"{asset.byte_size} bytes, {origin})"
            )
        lines.append("")

    if result.failures:
        lines.append("## Failures")
        for failure in result.failures:
            lines.append(f"- {failure.locator}: {failure.kind} - {failure.message}")
        lines.append("")

    if result.skipped_artifacts:
        lines.append("## Skipped Artifacts")
        for skipped in result.skipped_artifacts:
            lines.append(f"- {skipped.path}: {skipped.kind} - {skipped.message}")
        lines.append("")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines).strip() + "\n", encoding="utf-8")
