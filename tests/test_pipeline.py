"""Tests for per-kind dispatch, file copies and remote routing."""

from __future__ import annotations

import dataclasses

import pytest

from assetlink.errors import ReadFailed, UnexpectedContentType
from assetlink.manifest import AssetKind, AssetManifestEntry
from assetlink.manifest.options import ScriptOptions
from assetlink.pipeline import FetchedResource, Pipeline, UtilityCatalog, output_name
from assetlink.pipeline.files import file_extension, read_tree
from assetlink.pipeline.script import transform_script
from conftest import png_bytes


class StubFetcher:
    """In-memory fetch capability keyed by URL."""

    def __init__(self, responses: dict[str, tuple[bytes, str | None]]):
        self.responses = responses
        self.requests: list[tuple[str, float | None]] = []

    def fetch(self, url, *, timeout=None):
        self.requests.append((url, timeout))
        data, content_type = self.responses[url]
        return FetchedResource(url=url, data=data, content_type=content_type)


def _pipeline(tmp_path, fetcher=None, **kwargs) -> Pipeline:
    return Pipeline(source_root=tmp_path, fetcher=fetcher or StubFetcher({}), **kwargs)


def _run(pipeline: Pipeline, entry: AssetManifestEntry):
    return pipeline.transform(entry, pipeline.read_source(entry))


def test_output_name():
    assert output_name("logo", "0123456789abcdef", "jpg") == "logo-0123456789abcdef.jpg"
    assert output_name("static", "0123456789abcdef", "") == "static-0123456789abcdef"


def test_mismatched_options_are_rejected(tmp_path):
    (tmp_path / "app.js").write_bytes(b"var a;")
    entry = dataclasses.replace(AssetManifestEntry.create("script", "app.js"), kind=AssetKind.IMAGE)

    with pytest.raises(TypeError, match="expected ImageOptions"):
        _run(_pipeline(tmp_path), entry)


class TestScript:
    def test_passthrough(self):
        source = b"function f ( a ) {\n  return a ; // keep\n}\n"
        assert transform_script(source, ScriptOptions(minify=False)).data == source

    def test_minify(self):
        output = transform_script(b"function f ( a ) {\n  return a ; // drop\n}\n", ScriptOptions())
        assert output.extension == "js"
        assert b"// drop" not in output.data
        assert len(output.data) < 40


class TestFiles:
    def test_file_copy_is_byte_identical(self, tmp_path):
        (tmp_path / "data.json").write_bytes(b'{"a": 1}\n')
        output = _run(_pipeline(tmp_path), AssetManifestEntry.create("file", "data.json"))
        assert output.data == b'{"a": 1}\n'
        assert output.extension == "json"

    def test_extensionless_file(self):
        assert file_extension("LICENSE") == "bin"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ReadFailed):
            _run(_pipeline(tmp_path), AssetManifestEntry.create("file", "missing.txt"))

    def test_folder_tree(self, tmp_path):
        root = tmp_path / "static"
        (root / "img").mkdir(parents=True)
        (root / "img" / "a.png").write_bytes(b"png")
        (root / "robots.txt").write_bytes(b"robots")
        (root / ".secret").write_bytes(b"hidden")

        output = _run(_pipeline(tmp_path), AssetManifestEntry.create("folder", "static"))

        assert output.is_tree
        assert list(output.files) == ["img/a.png", "robots.txt"]
        assert output.byte_size == len(b"png") + len(b"robots")

    def test_hidden_files_on_request(self, tmp_path):
        (tmp_path / "static").mkdir()
        (tmp_path / "static" / ".well-known").write_bytes(b"x")
        assert ".well-known" in read_tree(tmp_path / "static", include_hidden=True)


class TestRemote:
    def test_auto_routes_by_content_type(self, tmp_path):
        url = "https://cdn.example.com/theme"
        fetcher = StubFetcher({url: (b"body {  margin : 0 ; }", "text/css")})
        entry = AssetManifestEntry.create("remote_url", url, {"timeout_seconds": 3})

        output = _run(_pipeline(tmp_path, fetcher), entry)

        assert output.extension == "css"
        assert output.data == b"body{margin:0}"
        assert fetcher.requests == [(url, 3.0)]

    def test_image_body(self, tmp_path):
        url = "https://cdn.example.com/pic.png"
        fetcher = StubFetcher({url: (png_bytes(), "image/png")})
        output = _run(_pipeline(tmp_path, fetcher), AssetManifestEntry.create("remote_url", url))
        assert output.extension == "png"

    def test_other_bodies_are_copied(self, tmp_path):
        url = "https://cdn.example.com/font"
        fetcher = StubFetcher({url: (b"wOF2", "font/woff2")})
        output = _run(_pipeline(tmp_path, fetcher), AssetManifestEntry.create("remote_url", url))
        assert (output.extension, output.data) == ("woff2", b"wOF2")

    def test_forced_kind_must_match(self, tmp_path):
        url = "https://cdn.example.com/theme.css"
        fetcher = StubFetcher({url: (b"<html>", "text/html")})
        entry = AssetManifestEntry.create("remote_url", url, {"as_kind": "stylesheet"})
        with pytest.raises(UnexpectedContentType):
            _run(_pipeline(tmp_path, fetcher), entry)

    def test_url_locator_on_image_kind(self, tmp_path):
        url = "https://cdn.example.com/logo.png"
        fetcher = StubFetcher({url: (png_bytes(), "image/png")})
        entry = AssetManifestEntry.create("image", url, {"format": "jpeg"})
        pipeline = _pipeline(tmp_path, fetcher)

        assert pipeline.read_source(entry) is None
        assert _run(pipeline, entry).extension == "jpg"


class TestSignature:
    def test_utility_signature_tracks_classes(self, tmp_path):
        entry = AssetManifestEntry.create("stylesheet", "site.css", {"utilities": True})
        pipeline = _pipeline(tmp_path)
        assert pipeline.for_run(["p-4"]).signature(entry) != pipeline.signature(entry)

    def test_catalog_extensions_change_signature(self, tmp_path):
        entry = AssetManifestEntry.create("stylesheet", "site.css", {"utilities": True})
        plain = _pipeline(tmp_path).signature(entry)
        extended = _pipeline(tmp_path, catalog=UtilityCatalog({"btn": "padding:1rem"})).signature(entry)
        assert plain != extended

    def test_scan_roots_feed_utilities(self, tmp_path):
        (tmp_path / "templates").mkdir()
        (tmp_path / "templates" / "page.html").write_text('<p class="italic">x</p>', encoding="utf-8")
        (tmp_path / "site.css").write_bytes(b"")
        entry = AssetManifestEntry.create(
            "stylesheet", "site.css", {"utilities": True, "scan_roots": ["templates"]}
        )

        output = _run(_pipeline(tmp_path), entry)

        assert output.data == b".italic{font-style:italic}"

    def test_for_run_copies_are_independent(self, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        page = templates / "page.html"
        page.write_text('<p class="italic">x</p>', encoding="utf-8")
        (tmp_path / "site.css").write_bytes(b"")
        entry = AssetManifestEntry.create(
            "stylesheet", "site.css", {"utilities": True, "scan_roots": ["templates"]}
        )
        base = _pipeline(tmp_path)

        first = _run(base.for_run(["p-4"]), entry)
        page.write_text('<p class="underline">x</p>', encoding="utf-8")
        second = _run(base.for_run([]), entry)

        assert first.data == b".p-4{padding:1rem}.italic{font-style:italic}"
        assert second.data == b".underline{text-decoration-line:underline}"
        assert base.referenced_classes == frozenset()
