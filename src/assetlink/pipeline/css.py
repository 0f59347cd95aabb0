"""Small CSS rule model: parsing, safe merging and compact rendering."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

Declarations = tuple[tuple[str, str], ...]

_WHITESPACE = re.compile(r"\s+")
_LEADING_AT_RULES = ("@charset", "@import", "@namespace")


@dataclass(frozen=True, slots=True)
class CssRule:
    """A qualified rule, optionally nested in a media query."""

    selector: str
    declarations: Declarations
    media: str | None = None

    def identities(self) -> set[tuple[str, str]]:
        context = self.media or ""
        return {(context, selector) for selector in split_top_level(self.selector, ",")}

    def render(self) -> str:
        body = ";".join(f"{prop}:{value}" for prop, value in self.declarations)
        return f"{self.selector}{{{body}}}"


@dataclass(frozen=True, slots=True)
class CssMedia:
    condition: str
    children: tuple[CssNode, ...] = field(default_factory=tuple)

    def render(self) -> str:
        inner = "".join(child.render() for child in self.children)
        return f"@media {self.condition}{{{inner}}}"


@dataclass(frozen=True, slots=True)
class CssRaw:
    """Statement or block kept verbatim (``@import``, ``@font-face``, ...)."""

    text: str

    @property
    def is_leading(self) -> bool:
        return self.text.lower().startswith(_LEADING_AT_RULES)

    def render(self) -> str:
        return self.text


CssNode = CssRule | CssMedia | CssRaw


def parse_stylesheet(text: str, media: str | None = None) -> list[CssNode]:
    """Split a stylesheet into top-level nodes."""

    nodes: list[CssNode] = []
    index = 0
    start = 0
    length = len(text)
    while index < length:
        char = text[index]
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = length if end < 0 else end + 2
            continue
        if char in "\"'":
            index = _skip_string(text, index)
            continue
        if char == ";":
            statement = _strip_comments(text[start : index + 1]).strip()
            if statement and statement != ";":
                nodes.append(CssRaw(statement))
            start = index + 1
        elif char == "{":
            close = _matching_brace(text, index)
            prelude = _collapse(_strip_comments(text[start:index]))
            body = text[index + 1 : close]
            node = _build_node(prelude, body, media)
            if node is not None:
                nodes.append(node)
            index = close + 1
            start = index
            continue
        index += 1
    trailing = _strip_comments(text[start:]).strip()
    if trailing:
        nodes.append(CssRaw(trailing))
    return nodes


def merge_adjacent(nodes: Iterable[CssNode]) -> list[CssNode]:
    """Merge neighbouring rules that share a selector or a declaration block.

    Only adjacent rules are combined, so the cascade order is unchanged.
    """

    merged: list[CssNode] = []
    for node in nodes:
        if isinstance(node, CssMedia):
            node = replace(node, children=tuple(merge_adjacent(node.children)))
        previous = merged[-1] if merged else None
        if isinstance(node, CssRule) and isinstance(previous, CssRule):
            if previous.media == node.media and previous.selector == node.selector:
                merged[-1] = replace(
                    previous, declarations=_combine(previous.declarations, node.declarations)
                )
                continue
            if (
                previous.media == node.media
                and previous.declarations == node.declarations
                and _mergeable(previous.selector)
                and _mergeable(node.selector)
            ):
                merged[-1] = replace(previous, selector=_join_selectors(previous.selector, node.selector))
                continue
        merged.append(node)
    return merged


def rule_identities(nodes: Iterable[CssNode]) -> set[tuple[str, str]]:
    """Collect ``(media, selector)`` pairs defined by the given nodes."""

    found: set[tuple[str, str]] = set()
    for node in nodes:
        if isinstance(node, CssRule):
            found |= node.identities()
        elif isinstance(node, CssMedia):
            found |= rule_identities(node.children)
    return found


def render_rules(rules: Iterable[CssRule]) -> str:
    """Render rules, grouping consecutive rules of one media query into a block."""

    parts: list[str] = []
    group: list[CssRule] = []
    condition: str | None = None
    for rule in rules:
        if rule.media != condition and group:
            parts.append(_render_group(condition, group))
            group = []
        condition = rule.media
        group.append(rule)
    if group:
        parts.append(_render_group(condition, group))
    return "".join(parts)


def normalize_media(condition: str) -> str:
    text = _collapse(condition)
    text = re.sub(r"\(\s*", "(", text)
    text = re.sub(r"\s*\)", ")", text)
    text = re.sub(r"\s*:\s*", ":", text)
    return text


def split_top_level(text: str, separator: str) -> list[str]:
    """Split on ``separator`` outside strings, brackets and parentheses."""

    parts: list[str] = []
    depth = 0
    index = 0
    start = 0
    while index < len(text):
        char = text[index]
        if char in "\"'":
            index = _skip_string(text, index)
            continue
        if char == "\\":
            index += 2
            continue
        if char in "([":
            depth += 1
        elif char in ")]":
            depth = max(0, depth - 1)
        elif char == separator and depth == 0:
            parts.append(text[start:index].strip())
            start = index + 1
        index += 1
    parts.append(text[start:].strip())
    return [part for part in parts if part]


def parse_declarations(body: str) -> Declarations:
    declarations: list[tuple[str, str]] = []
    for item in split_top_level(_strip_comments(body), ";"):
        prop, sep, value = item.partition(":")
        if not sep:
            continue
        declarations.append((prop.strip(), _collapse(value)))
    return tuple(declarations)


def _build_node(prelude: str, body: str, media: str | None) -> CssNode | None:
    if not prelude:
        return None
    lowered = prelude.lower()
    if lowered.startswith("@media"):
        condition = normalize_media(prelude[len("@media") :])
        return CssMedia(condition, tuple(parse_stylesheet(body, media=condition)))
    if lowered.startswith("@") or "{" in body:
        return CssRaw(f"{prelude}{{{body.strip()}}}")
    declarations = parse_declarations(body)
    if not declarations:
        return None
    selector = ",".join(split_top_level(prelude, ","))
    return CssRule(selector, declarations, media)


def _render_group(condition: str | None, rules: list[CssRule]) -> str:
    inner = "".join(rule.render() for rule in rules)
    return inner if condition is None else f"@media {condition}{{{inner}}}"


def _combine(first: Declarations, second: Declarations) -> Declarations:
    combined = list(first) + list(second)
    result: list[tuple[str, str]] = []
    for position, pair in enumerate(combined):
        if pair in combined[position + 1 :]:
            continue
        result.append(pair)
    return tuple(result)


def _mergeable(selector: str) -> bool:
    return ":-" not in selector and "::-" not in selector


def _join_selectors(first: str, second: str) -> str:
    selectors = split_top_level(first, ",")
    for selector in split_top_level(second, ","):
        if selector not in selectors:
            selectors.append(selector)
    return ",".join(selectors)


def _matching_brace(text: str, index: int) -> int:
    depth = 0
    while index < len(text):
        char = text[index]
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = len(text) if end < 0 else end + 2
            continue
        if char in "\"'":
            index = _skip_string(text, index)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return len(text)


def _skip_string(text: str, index: int) -> int:
    quote = text[index]
    index += 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1
        index += 1
    return index


def _strip_comments(text: str) -> str:
    return re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()
