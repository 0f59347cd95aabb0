"""Tests for the manifest and Markdown build report writers."""

from __future__ import annotations

import json

from assetlink.core import BuildResult, BuildStats, SkippedArtifact
from assetlink.manifest import AssetFailure, AssetKind, OptimizedAsset
from assetlink.reports import write_build_report, write_manifest


def _result() -> BuildResult:
    return BuildResult(
        assets=[
            OptimizedAsset(
                identifier="aa" * 32,
                kind=AssetKind.IMAGE,
                locator="logo.png",
                output_path="logo-0123456789abcdef.jpg",
                content_hash="0123456789abcdef",
                byte_size=1234,
                preload=True,
            )
        ],
        failures=[
            AssetFailure(
                identifier="bb" * 32,
                locator="https://cdn.example.com/a.css",
                kind="HttpStatus",
                message="HTTP 503 for https://cdn.example.com/a.css",
                retryable=True,
            )
        ],
        metadata={"crate": "web"},
        skipped_artifacts=[SkippedArtifact("notes.txt", "Unsupported", "Unrecognized artifact format")],
        stats=BuildStats(artifacts=2, entries=2, transformed=1, failed=1, skipped_artifacts=1),
    )


def test_manifest_json(tmp_path):
    path = tmp_path / "out" / "manifest.json"
    write_manifest(_result(), path)

    payload = json.loads(path.read_text(encoding="utf-8"))

    asset = payload["assets"]["aa" * 32]
    assert asset == {
        "kind": "image",
        "locator": "logo.png",
        "path": "logo-0123456789abcdef.jpg",
        "hash": "0123456789abcdef",
        "size": 1234,
        "preload": True,
    }
    assert payload["failures"][0]["retryable"] is True
    assert payload["metadata"] == {"crate": "web"}
    assert payload["stats"]["transformed"] == 1
    assert payload["skipped_artifacts"][0]["path"] == "notes.txt"


def test_build_report(tmp_path):
    path = tmp_path / "build-report.md"
    write_build_report(_result(), path)

    text = path.read_text(encoding="utf-8")

    assert text.startswith("# assetlink Build")
    assert "Status: failed" in text
    assert "`logo-0123456789abcdef.jpg` <- logo.png" in text
    assert "## Failures" in text
    assert "HttpStatus - HTTP 503" in text
    assert "## Skipped Artifacts" in text
