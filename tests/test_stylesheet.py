"""Tests for stylesheet minification and utility class generation."""

from __future__ import annotations

import pytest

from assetlink.errors import DecodeFailed, ReadFailed
from assetlink.manifest import StylesheetOptions
from assetlink.pipeline.css import merge_adjacent, parse_stylesheet, render_rules
from assetlink.pipeline.stylesheet import collect_classes, transform_stylesheet
from assetlink.pipeline.utilities import UtilityCatalog, css_escape


def _css(data: bytes, catalog: UtilityCatalog | None = None, **options) -> str:
    output = transform_stylesheet(
        data,
        StylesheetOptions(**options),
        catalog=catalog or UtilityCatalog(),
    )
    assert output.extension == "css"
    return output.data.decode("utf-8")


def test_utility_scenario():
    css = _css(b"", utilities=True, classes=["p-4", "text-center"])
    assert css == ".p-4{padding:1rem}.text-center{text-align:center}"


def test_unknown_classes_are_ignored():
    assert _css(b"", utilities=True, classes=["not-a-utility", "p-999"]) == ""


def test_minify_merges_adjacent_rules():
    source = b"""
    /* header */
    h1 { color: red; }
    h1 { margin: 0; }
    h2 { margin: 0; }
    """
    assert _css(source) == "h1{color:red;margin:0}h2{margin:0}"


def test_identical_blocks_join_selectors():
    nodes = merge_adjacent(parse_stylesheet("a{color:red}b{color:red}"))
    assert render_rules(nodes) == "a,b{color:red}"


def test_vendor_pseudo_selectors_are_not_joined():
    nodes = merge_adjacent(parse_stylesheet("a::-moz-selection{color:red}a::selection{color:red}"))
    assert len(nodes) == 2


def test_custom_rule_shadows_utility():
    css = _css(b".p-4{padding:2px}", utilities=True, classes=["p-4", "m-2"])
    assert css == ".m-2{margin:0.5rem}.p-4{padding:2px}"


def test_import_stays_first():
    css = _css(b'@import url("base.css");\nbody{margin:0}', utilities=True, classes=["flex"])
    assert css.startswith("@import")
    assert css.index(".flex{display:flex}") < css.index("body{")


def test_unminified_output_keeps_source():
    source = b"body {\n  margin: 0;\n}\n"
    css = _css(source, minify=False, utilities=True, classes=["block"])
    assert css == ".block{display:block}\nbody {\n  margin: 0;\n}\n"


def test_variants_order_and_media():
    css = _css(b"", utilities=True, classes=["md:p-2", "hover:bg-red-500", "sm:p-2", "p-2"])
    assert css == (
        ".p-2{padding:0.5rem}"
        ".hover\\:bg-red-500:hover{background-color:#ef4444}"
        "@media (min-width:640px){.sm\\:p-2{padding:0.5rem}}"
        "@media (min-width:768px){.md\\:p-2{padding:0.5rem}}"
    )


def test_important_prefix():
    assert _css(b"", utilities=True, classes=["!hidden"]) == ".\\!hidden{display:none!important}"


def test_extensions_override_builtins():
    catalog = UtilityCatalog({"btn": "padding:0.5rem 1rem;border-radius:0.25rem", "flex": "display:grid"})
    css = _css(b"", catalog, utilities=True, classes=["btn", "flex"])
    assert ".btn{padding:0.5rem 1rem;border-radius:0.25rem}" in css
    assert ".flex{display:grid}" in css


def test_referenced_classes_are_added():
    output = transform_stylesheet(
        b"",
        StylesheetOptions(utilities=True),
        catalog=UtilityCatalog(),
        referenced=["rounded-lg"],
    )
    assert output.data == b".rounded-lg{border-radius:0.5rem}"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("w-1/2", "w-1\\/2"),
        ("2xl:p-4", "\\32 xl\\:p-4"),
        ("p-0.5", "p-0\\.5"),
    ],
)
def test_css_escape(name, expected):
    assert css_escape(name) == expected


def test_invalid_utf8_is_decode_failed():
    with pytest.raises(DecodeFailed):
        _css(b"\xff\xfe body{}")


class TestCollectClasses:
    def test_html_and_source_files(self, tmp_path):
        (tmp_path / "index.html").write_text(
            '<div class="p-4 custom-widget"><span class="text-center">x</span></div>',
            encoding="utf-8",
        )
        (tmp_path / "view.rs").write_text('html! { <p class="md:flex">{"hi"}</p> }', encoding="utf-8")
        (tmp_path / "notes.txt").write_text("mt-8", encoding="utf-8")

        found = collect_classes([tmp_path], extensions=[".html", ".rs"], catalog=UtilityCatalog())

        assert {"p-4", "custom-widget", "text-center", "md:flex"} <= found
        assert "mt-8" not in found

    def test_missing_root(self, tmp_path):
        with pytest.raises(ReadFailed):
            collect_classes([tmp_path / "nope"], extensions=[".html"], catalog=UtilityCatalog())
