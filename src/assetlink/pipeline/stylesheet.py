"""Stylesheet minification and utility class generation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

import cssmin
from bs4 import BeautifulSoup

from assetlink.errors import DecodeFailed, ReadFailed
from assetlink.manifest.options import StylesheetOptions
from assetlink.pipeline.base import TransformOutput
from assetlink.pipeline.css import (
    CssNode,
    CssRaw,
    merge_adjacent,
    parse_stylesheet,
    render_rules,
    rule_identities,
)
from assetlink.pipeline.utilities import UtilityCatalog

logger = logging.getLogger(__name__)

_HTML_SUFFIXES = {".html", ".htm"}
_CLASS_TOKEN = re.compile(r"[A-Za-z0-9_:!./\-]+")
_LEADING_STATEMENTS = re.compile(
    r"\A(?:\s+|/\*.*?\*/|@(?:charset|import|namespace)\b[^;]*;)*", re.DOTALL | re.IGNORECASE
)


def transform_stylesheet(
    data: bytes,
    options: StylesheetOptions,
    *,
    catalog: UtilityCatalog,
    referenced: Iterable[str] = (),
) -> TransformOutput:
    """Minify a stylesheet and prepend the utility rules it needs.

    ``referenced`` adds class names found outside the entry's own options,
    such as class lists embedded in artifacts or names scanned from templates.
    """

    text = decode_text(data)
    utility_css = ""
    custom_nodes = parse_stylesheet(cssmin.cssmin(text)) if options.minify else parse_stylesheet(text)
    if options.minify:
        custom_nodes = merge_adjacent(custom_nodes)

    if options.utilities:
        names = set(options.classes) | set(referenced)
        defined = rule_identities(custom_nodes)
        rules = [rule for rule in catalog.generate(names) if not rule.identities() & defined]
        utility_css = render_rules(rules)
        logger.debug("Generated %s utility rules from %s class names", len(rules), len(names))

    if options.minify:
        body = _assemble_minified(custom_nodes, utility_css)
    else:
        body = _assemble_verbatim(text, utility_css)
    return TransformOutput(extension="css", data=body.encode("utf-8"), mime="text/css")


def collect_classes(
    roots: Sequence[Path],
    *,
    extensions: Iterable[str],
    catalog: UtilityCatalog,
) -> set[str]:
    """Find utility class names referenced by files under ``roots``.

    HTML documents contribute their ``class`` attributes. Other text files
    contribute any token that resolves against the catalog.
    """

    suffixes = {suffix.lower() for suffix in extensions}
    found: set[str] = set()
    for path in _iter_scan_files(roots, suffixes):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ReadFailed(f"Unable to read {path}: {exc}", path=str(path)) from exc
        if path.suffix.lower() in _HTML_SUFFIXES:
            found |= _html_classes(text)
        else:
            found |= {token for token in _text_tokens(text) if catalog.known(token)}
    return found


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeFailed(f"Source is not valid UTF-8: {exc}") from exc


def _assemble_minified(nodes: list[CssNode], utility_css: str) -> str:
    position = 0
    while position < len(nodes):
        node = nodes[position]
        if not (isinstance(node, CssRaw) and node.is_leading):
            break
        position += 1
    leading = "".join(node.render() for node in nodes[:position])
    rest = "".join(node.render() for node in nodes[position:])
    return leading + utility_css + rest


def _assemble_verbatim(text: str, utility_css: str) -> str:
    if not utility_css:
        return text
    match = _LEADING_STATEMENTS.match(text)
    split = match.end() if match else 0
    head, tail = text[:split].rstrip(), text[split:].lstrip()
    parts = [part for part in (head, utility_css, tail) if part]
    return "\n".join(parts)


def _iter_scan_files(roots: Sequence[Path], suffixes: set[str]) -> Iterable[Path]:
    for root in roots:
        if root.is_file():
            yield root
        elif root.is_dir():
            for path in sorted(root.rglob("*")):
                if path.is_file() and path.suffix.lower() in suffixes:
                    yield path
        else:
            raise ReadFailed(f"Class scan root does not exist: {root}", path=str(root))


def _html_classes(text: str) -> set[str]:
    soup = BeautifulSoup(text, "html.parser")
    names: set[str] = set()
    for tag in soup.find_all(class_=True):
        value = tag.get("class")
        if isinstance(value, str):
            value = value.split()
        names.update(name for name in value or () if name)
    return names


def _text_tokens(text: str) -> set[str]:
    return {token.rstrip(".:") for token in _CLASS_TOKEN.findall(text)}
