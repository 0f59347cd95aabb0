"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from assetlink.config import default_config, load_config


def _write_yaml(path: Path, payload: dict) -> None:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_load_config_merges_default_and_local(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    _write_yaml(
        config_dir / "default.yaml",
        {
            "version": 1,
            "logging": {"level": "info"},
            "build": {"output_dir": "public/assets", "workers": 4},
            "network": {"max_retries": 2, "timeout_seconds": 10},
        },
    )
    _write_yaml(
        config_dir / "local.yaml",
        {
            "logging": {"level": "WARN"},
            "build": {"workers": 1},
            "utilities": {"extend": {"btn": "padding:1rem"}, "scan_extensions": ["HTML", ".rs"]},
        },
    )

    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.logging.level == "warn"
    assert config.build.output_dir == Path("public/assets")
    assert config.build.workers == 1
    assert config.network.max_retries == 2
    assert config.network.timeout_seconds == 10.0
    assert config.utilities.extend == {"btn": "padding:1rem"}
    assert config.utilities.scan_extensions == [".html", ".rs"]
    assert len(config.loaded_from) == 2


def test_load_config_with_explicit_override(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write_yaml(config_dir / "default.yaml", {"logging": {"level": "warn"}})
    _write_yaml(config_dir / "local.yaml", {"logging": {"level": "error"}})
    override_path = tmp_path / "extra.yaml"
    _write_yaml(override_path, {"build": {"best_effort_scan": True}})

    monkeypatch.chdir(tmp_path)

    config = load_config(override_path)

    assert config.build.best_effort_scan is True
    assert config.logging.level == "info"
    assert config.loaded_from == (str(override_path),)


def test_load_config_falls_back_to_packaged_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.build.output_dir == Path("dist/assets")
    assert config.cache.verify_content is True
    assert config.images.preview_width == 24
    assert config.index_path() == Path("dist/assets/.assetlink/index.sqlite")


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "payload",
    [
        {"build": {"workers": 0}},
        {"network": {"backoff_min_seconds": 5, "backoff_max_seconds": 1}},
        {"utilities": {"extend": {"bad name": "color:red"}}},
        {"utilities": {"extend": {"btn": "no declarations"}}},
        {"logging": {"level": "loud"}},
        {"unknown": {}},
    ],
)
def test_invalid_config(tmp_path, payload):
    path = tmp_path / "config.yaml"
    _write_yaml(path, payload)
    with pytest.raises(ValueError):
        load_config(path)


def test_with_overrides_keeps_unrelated_settings():
    base = default_config().with_overrides({"network": {"max_retries": 3}})
    config = base.with_overrides({"build": {"output_dir": "out"}})

    assert config.network.max_retries == 3
    assert config.build.output_dir == Path("out")
    assert config.index_path() == Path("out/.assetlink/index.sqlite")
