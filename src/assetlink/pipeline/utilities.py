"""Tailwind-style utility class catalog.

Only a bounded subset of utilities is known. Class names that do not resolve
are ignored so that arbitrary tokens scanned from templates are harmless.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping

from assetlink.pipeline.css import CssRule, Declarations, parse_declarations
from assetlink.pipeline.palette import lookup_color

logger = logging.getLogger(__name__)

SPACING = {
    "0": "0px",
    "px": "1px",
    "0.5": "0.125rem",
    "1": "0.25rem",
    "1.5": "0.375rem",
    "2": "0.5rem",
    "2.5": "0.625rem",
    "3": "0.75rem",
    "3.5": "0.875rem",
    "4": "1rem",
    "5": "1.25rem",
    "6": "1.5rem",
    "7": "1.75rem",
    "8": "2rem",
    "9": "2.25rem",
    "10": "2.5rem",
    "11": "2.75rem",
    "12": "3rem",
    "14": "3.5rem",
    "16": "4rem",
    "20": "5rem",
    "24": "6rem",
    "28": "7rem",
    "32": "8rem",
    "36": "9rem",
    "40": "10rem",
    "44": "11rem",
    "48": "12rem",
    "52": "13rem",
    "56": "14rem",
    "60": "15rem",
    "64": "16rem",
    "72": "18rem",
    "80": "20rem",
    "96": "24rem",
}

PSEUDO_VARIANTS = {
    "hover": ":hover",
    "focus": ":focus",
    "focus-within": ":focus-within",
    "focus-visible": ":focus-visible",
    "active": ":active",
    "visited": ":visited",
    "disabled": ":disabled",
    "first": ":first-child",
    "last": ":last-child",
    "odd": ":nth-child(odd)",
    "even": ":nth-child(even)",
}

# Order matters: responsive rules are emitted after base rules, smallest first.
MEDIA_VARIANTS = {
    "sm": "(min-width:640px)",
    "md": "(min-width:768px)",
    "lg": "(min-width:1024px)",
    "xl": "(min-width:1280px)",
    "2xl": "(min-width:1536px)",
    "dark": "(prefers-color-scheme:dark)",
    "print": "print",
}

_SPACING_PROPERTIES = {
    "p": ("padding",),
    "px": ("padding-left", "padding-right"),
    "py": ("padding-top", "padding-bottom"),
    "pt": ("padding-top",),
    "pr": ("padding-right",),
    "pb": ("padding-bottom",),
    "pl": ("padding-left",),
    "m": ("margin",),
    "mx": ("margin-left", "margin-right"),
    "my": ("margin-top", "margin-bottom"),
    "mt": ("margin-top",),
    "mr": ("margin-right",),
    "mb": ("margin-bottom",),
    "ml": ("margin-left",),
    "gap": ("gap",),
    "gap-x": ("column-gap",),
    "gap-y": ("row-gap",),
}

_INSET_PROPERTIES = {
    "inset": ("inset",),
    "inset-x": ("left", "right"),
    "inset-y": ("top", "bottom"),
    "top": ("top",),
    "right": ("right",),
    "bottom": ("bottom",),
    "left": ("left",),
}

_SIZE_PROPERTIES = {
    "w": "width",
    "h": "height",
    "min-w": "min-width",
    "min-h": "min-height",
    "max-w": "max-width",
    "max-h": "max-height",
}

_SIZE_KEYWORDS = {
    "auto": "auto",
    "full": "100%",
    "min": "min-content",
    "max": "max-content",
    "fit": "fit-content",
}

_MAX_WIDTHS = {
    "none": "none",
    "xs": "20rem",
    "sm": "24rem",
    "md": "28rem",
    "lg": "32rem",
    "xl": "36rem",
    "2xl": "42rem",
    "3xl": "48rem",
    "4xl": "56rem",
    "5xl": "64rem",
    "6xl": "72rem",
    "7xl": "80rem",
    "full": "100%",
    "prose": "65ch",
}

_FONT_SIZES = {
    "xs": ("0.75rem", "1rem"),
    "sm": ("0.875rem", "1.25rem"),
    "base": ("1rem", "1.5rem"),
    "lg": ("1.125rem", "1.75rem"),
    "xl": ("1.25rem", "1.75rem"),
    "2xl": ("1.5rem", "2rem"),
    "3xl": ("1.875rem", "2.25rem"),
    "4xl": ("2.25rem", "2.5rem"),
    "5xl": ("3rem", "1"),
    "6xl": ("3.75rem", "1"),
    "7xl": ("4.5rem", "1"),
    "8xl": ("6rem", "1"),
    "9xl": ("8rem", "1"),
}

_FONT_WEIGHTS = {
    "thin": "100",
    "extralight": "200",
    "light": "300",
    "normal": "400",
    "medium": "500",
    "semibold": "600",
    "bold": "700",
    "extrabold": "800",
    "black": "900",
}

_FONT_FAMILIES = {
    "sans": 'ui-sans-serif,system-ui,sans-serif',
    "serif": 'ui-serif,Georgia,Cambria,"Times New Roman",Times,serif',
    "mono": 'ui-monospace,SFMono-Regular,Menlo,Monaco,Consolas,monospace',
}

_LINE_HEIGHTS = {
    "none": "1",
    "tight": "1.25",
    "snug": "1.375",
    "normal": "1.5",
    "relaxed": "1.625",
    "loose": "2",
}

_TRACKING = {
    "tighter": "-0.05em",
    "tight": "-0.025em",
    "normal": "0em",
    "wide": "0.025em",
    "wider": "0.05em",
    "widest": "0.1em",
}

_RADII = {
    "none": "0px",
    "sm": "0.125rem",
    "": "0.25rem",
    "md": "0.375rem",
    "lg": "0.5rem",
    "xl": "0.75rem",
    "2xl": "1rem",
    "3xl": "1.5rem",
    "full": "9999px",
}

_SHADOWS = {
    "sm": "0 1px 2px 0 rgb(0 0 0/0.05)",
    "": "0 1px 3px 0 rgb(0 0 0/0.1),0 1px 2px -1px rgb(0 0 0/0.1)",
    "md": "0 4px 6px -1px rgb(0 0 0/0.1),0 2px 4px -2px rgb(0 0 0/0.1)",
    "lg": "0 10px 15px -3px rgb(0 0 0/0.1),0 4px 6px -4px rgb(0 0 0/0.1)",
    "xl": "0 20px 25px -5px rgb(0 0 0/0.1),0 8px 10px -6px rgb(0 0 0/0.1)",
    "2xl": "0 25px 50px -12px rgb(0 0 0/0.25)",
    "inner": "inset 0 2px 4px 0 rgb(0 0 0/0.05)",
    "none": "0 0 #0000",
}

_BORDER_SIDES = {
    "": ("border-width",),
    "t": ("border-top-width",),
    "r": ("border-right-width",),
    "b": ("border-bottom-width",),
    "l": ("border-left-width",),
    "x": ("border-left-width", "border-right-width"),
    "y": ("border-top-width", "border-bottom-width"),
}

_BORDER_WIDTHS = {"": "1px", "0": "0px", "2": "2px", "4": "4px", "8": "8px"}

_OPACITY_STEPS = ("0", "5", "10", "20", "25", "30", "40", "50", "60", "70", "75", "80", "90", "95", "100")
_Z_INDEX = ("0", "10", "20", "30", "40", "50", "auto")

_STATIC: dict[str, dict[str, Declarations]] = {
    "layout": {
        "container": (("width", "100%"),),
        "block": (("display", "block"),),
        "inline-block": (("display", "inline-block"),),
        "inline": (("display", "inline"),),
        "flex": (("display", "flex"),),
        "inline-flex": (("display", "inline-flex"),),
        "grid": (("display", "grid"),),
        "inline-grid": (("display", "inline-grid"),),
        "table": (("display", "table"),),
        "contents": (("display", "contents"),),
        "hidden": (("display", "none"),),
        "static": (("position", "static"),),
        "fixed": (("position", "fixed"),),
        "absolute": (("position", "absolute"),),
        "relative": (("position", "relative"),),
        "sticky": (("position", "sticky"),),
        "visible": (("visibility", "visible"),),
        "invisible": (("visibility", "hidden"),),
        "overflow-auto": (("overflow", "auto"),),
        "overflow-hidden": (("overflow", "hidden"),),
        "overflow-visible": (("overflow", "visible"),),
        "overflow-scroll": (("overflow", "scroll"),),
        "overflow-x-auto": (("overflow-x", "auto"),),
        "overflow-y-auto": (("overflow-y", "auto"),),
        "overflow-x-hidden": (("overflow-x", "hidden"),),
        "overflow-y-hidden": (("overflow-y", "hidden"),),
        "box-border": (("box-sizing", "border-box"),),
        "box-content": (("box-sizing", "content-box"),),
    },
    "flexbox": {
        "flex-row": (("flex-direction", "row"),),
        "flex-row-reverse": (("flex-direction", "row-reverse"),),
        "flex-col": (("flex-direction", "column"),),
        "flex-col-reverse": (("flex-direction", "column-reverse"),),
        "flex-wrap": (("flex-wrap", "wrap"),),
        "flex-nowrap": (("flex-wrap", "nowrap"),),
        "flex-1": (("flex", "1 1 0%"),),
        "flex-auto": (("flex", "1 1 auto"),),
        "flex-initial": (("flex", "0 1 auto"),),
        "flex-none": (("flex", "none"),),
        "grow": (("flex-grow", "1"),),
        "grow-0": (("flex-grow", "0"),),
        "shrink": (("flex-shrink", "1"),),
        "shrink-0": (("flex-shrink", "0"),),
        "items-start": (("align-items", "flex-start"),),
        "items-end": (("align-items", "flex-end"),),
        "items-center": (("align-items", "center"),),
        "items-baseline": (("align-items", "baseline"),),
        "items-stretch": (("align-items", "stretch"),),
        "justify-start": (("justify-content", "flex-start"),),
        "justify-end": (("justify-content", "flex-end"),),
        "justify-center": (("justify-content", "center"),),
        "justify-between": (("justify-content", "space-between"),),
        "justify-around": (("justify-content", "space-around"),),
        "justify-evenly": (("justify-content", "space-evenly"),),
        "self-auto": (("align-self", "auto"),),
        "self-start": (("align-self", "flex-start"),),
        "self-end": (("align-self", "flex-end"),),
        "self-center": (("align-self", "center"),),
        "self-stretch": (("align-self", "stretch"),),
        "col-span-full": (("grid-column", "1/-1"),),
    },
    "typography": {
        "text-left": (("text-align", "left"),),
        "text-center": (("text-align", "center"),),
        "text-right": (("text-align", "right"),),
        "text-justify": (("text-align", "justify"),),
        "italic": (("font-style", "italic"),),
        "not-italic": (("font-style", "normal"),),
        "underline": (("text-decoration-line", "underline"),),
        "line-through": (("text-decoration-line", "line-through"),),
        "no-underline": (("text-decoration-line", "none"),),
        "uppercase": (("text-transform", "uppercase"),),
        "lowercase": (("text-transform", "lowercase"),),
        "capitalize": (("text-transform", "capitalize"),),
        "normal-case": (("text-transform", "none"),),
        "truncate": (
            ("overflow", "hidden"),
            ("text-overflow", "ellipsis"),
            ("white-space", "nowrap"),
        ),
        "whitespace-normal": (("white-space", "normal"),),
        "whitespace-nowrap": (("white-space", "nowrap"),),
        "whitespace-pre": (("white-space", "pre"),),
        "whitespace-pre-wrap": (("white-space", "pre-wrap"),),
        "break-words": (("overflow-wrap", "break-word"),),
        "break-all": (("word-break", "break-all"),),
    },
    "borders": {
        "border-solid": (("border-style", "solid"),),
        "border-dashed": (("border-style", "dashed"),),
        "border-dotted": (("border-style", "dotted"),),
        "border-double": (("border-style", "double"),),
        "border-none": (("border-style", "none"),),
    },
    "interactivity": {
        "cursor-auto": (("cursor", "auto"),),
        "cursor-default": (("cursor", "default"),),
        "cursor-pointer": (("cursor", "pointer"),),
        "cursor-wait": (("cursor", "wait"),),
        "cursor-text": (("cursor", "text"),),
        "cursor-move": (("cursor", "move"),),
        "cursor-not-allowed": (("cursor", "not-allowed"),),
        "pointer-events-none": (("pointer-events", "none"),),
        "pointer-events-auto": (("pointer-events", "auto"),),
        "select-none": (("user-select", "none"),),
        "select-text": (("user-select", "text"),),
        "select-all": (("user-select", "all"),),
        "select-auto": (("user-select", "auto"),),
    },
}

_CATEGORY_ORDER = (
    "layout",
    "inset",
    "flexbox",
    "spacing",
    "sizing",
    "typography",
    "colors",
    "borders",
    "effects",
    "interactivity",
    "extensions",
)

_IDENT = re.compile(r"[A-Za-z0-9_-]")


def css_escape(name: str) -> str:
    """Escape a class name for use in a selector (``w-1/2`` -> ``w-1\\/2``)."""

    escaped: list[str] = []
    for index, char in enumerate(name):
        if ord(char) >= 0x80:
            escaped.append(char)
        elif _IDENT.fullmatch(char):
            leading_digit = char.isdigit() and (
                index == 0 or (index == 1 and name[0] == "-")
            )
            escaped.append(f"\\{ord(char):x} " if leading_digit else char)
        else:
            escaped.append("\\" + char)
    return "".join(escaped)


def _fraction(value: str) -> str | None:
    numerator, sep, denominator = value.partition("/")
    if not sep or not numerator.isdigit() or not denominator.isdigit():
        return None
    top, bottom = int(numerator), int(denominator)
    if bottom not in (2, 3, 4, 5, 6, 12) or not 0 < top < bottom:
        return None
    percent = f"{top * 100 / bottom:.6f}".rstrip("0").rstrip(".")
    return f"{percent}%"


def _negate(value: str) -> str:
    return value if value in ("0px", "auto") else f"-{value}"


def _spacing(name: str) -> Declarations | None:
    negative = name.startswith("-")
    body = name[1:] if negative else name
    for prefix in sorted(_SPACING_PROPERTIES, key=len, reverse=True):
        if not body.startswith(prefix + "-"):
            continue
        key = body[len(prefix) + 1 :]
        is_margin = prefix.startswith("m")
        value = SPACING.get(key)
        if value is None and is_margin and key == "auto" and not negative:
            value = "auto"
        if value is None or (negative and not is_margin):
            return None
        if negative:
            value = _negate(value)
        return tuple((prop, value) for prop in _SPACING_PROPERTIES[prefix])
    return None


def _inset(name: str) -> Declarations | None:
    negative = name.startswith("-")
    body = name[1:] if negative else name
    for prefix in sorted(_INSET_PROPERTIES, key=len, reverse=True):
        if not body.startswith(prefix + "-"):
            continue
        key = body[len(prefix) + 1 :]
        value = SPACING.get(key) or _fraction(key)
        if value is None and key in ("auto", "full"):
            value = _SIZE_KEYWORDS[key]
        if value is None:
            return None
        if negative:
            value = _negate(value)
        return tuple((prop, value) for prop in _INSET_PROPERTIES[prefix])
    return None


def _sizing(name: str) -> Declarations | None:
    for prefix in sorted(_SIZE_PROPERTIES, key=len, reverse=True):
        if not name.startswith(prefix + "-"):
            continue
        key = name[len(prefix) + 1 :]
        prop = _SIZE_PROPERTIES[prefix]
        if prefix == "max-w":
            value = _MAX_WIDTHS.get(key)
        elif key == "screen":
            value = "100vh" if prefix.endswith("h") else "100vw"
        else:
            value = SPACING.get(key) or _fraction(key) or _SIZE_KEYWORDS.get(key)
        if value is None:
            return None
        return ((prop, value),)
    return None


def _typography(name: str) -> Declarations | None:
    if name.startswith("text-") and name[5:] in _FONT_SIZES:
        size, line_height = _FONT_SIZES[name[5:]]
        return (("font-size", size), ("line-height", line_height))
    if name.startswith("font-"):
        key = name[5:]
        if key in _FONT_WEIGHTS:
            return (("font-weight", _FONT_WEIGHTS[key]),)
        if key in _FONT_FAMILIES:
            return (("font-family", _FONT_FAMILIES[key]),)
        return None
    if name.startswith("leading-"):
        key = name[8:]
        value = _LINE_HEIGHTS.get(key) or (SPACING.get(key) if key.isdigit() else None)
        return None if value is None else (("line-height", value),)
    if name.startswith("tracking-") and name[9:] in _TRACKING:
        return (("letter-spacing", _TRACKING[name[9:]]),)
    return None


def _colors(name: str) -> Declarations | None:
    for prefix, prop in (("text-", "color"), ("bg-", "background-color"), ("border-", "border-color")):
        if name.startswith(prefix):
            value = lookup_color(name[len(prefix) :])
            return None if value is None else ((prop, value),)
    return None


def _borders(name: str) -> Declarations | None:
    if name == "rounded" or name.startswith("rounded-"):
        key = name[len("rounded-") :] if name != "rounded" else ""
        value = _RADII.get(key)
        return None if value is None else (("border-radius", value),)
    if name == "border" or name.startswith("border-"):
        parts = name.split("-")[1:]
        side = parts[0] if parts and parts[0] in _BORDER_SIDES else ""
        if side:
            parts = parts[1:]
        width = _BORDER_WIDTHS.get("-".join(parts))
        if width is None or len(parts) > 1:
            return None
        return tuple((prop, width) for prop in _BORDER_SIDES[side])
    return None


def _effects(name: str) -> Declarations | None:
    if name == "shadow" or name.startswith("shadow-"):
        key = name[len("shadow-") :] if name != "shadow" else ""
        value = _SHADOWS.get(key)
        return None if value is None else (("box-shadow", value),)
    if name.startswith("opacity-") and name[8:] in _OPACITY_STEPS:
        step = int(name[8:])
        return (("opacity", f"{step / 100:g}"),)
    if name.startswith("z-") and name[2:] in _Z_INDEX:
        return (("z-index", name[2:]),)
    return None


def _grid(name: str) -> Declarations | None:
    for prefix, template in (
        ("grid-cols-", "grid-template-columns"),
        ("grid-rows-", "grid-template-rows"),
    ):
        if name.startswith(prefix):
            count = name[len(prefix) :]
            if count.isdigit() and 1 <= int(count) <= 12:
                return ((template, f"repeat({count},minmax(0,1fr))"),)
            return None
    if name.startswith("col-span-"):
        count = name[len("col-span-") :]
        if count.isdigit() and 1 <= int(count) <= 12:
            return (("grid-column", f"span {count}/span {count}"),)
    return None


_RESOLVERS: tuple[tuple[str, Callable[[str], Declarations | None]], ...] = (
    ("inset", _inset),
    ("flexbox", _grid),
    ("spacing", _spacing),
    ("sizing", _sizing),
    ("typography", _typography),
    ("colors", _colors),
    ("borders", _borders),
    ("effects", _effects),
)


class UtilityCatalog:
    """Resolves utility class names to CSS rules.

    ``extend`` maps additional class names to declaration strings such as
    ``"padding:0.5rem 1rem;border-radius:0.25rem"``. Extensions take
    precedence over built-in utilities of the same name.
    """

    def __init__(self, extend: Mapping[str, str] | None = None) -> None:
        self._extensions: dict[str, Declarations] = {}
        for name, body in sorted((extend or {}).items()):
            declarations = parse_declarations(body)
            if not declarations:
                raise ValueError(f"Utility extension {name!r} has no declarations")
            self._extensions[name] = declarations

    def signature(self) -> str:
        """Stable digest of the catalog configuration."""

        payload = json.dumps(
            {name: list(map(list, decls)) for name, decls in self._extensions.items()},
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def resolve(self, class_name: str) -> CssRule | None:
        resolved = self._resolve_with_rank(class_name)
        return None if resolved is None else resolved[1]

    def known(self, class_name: str) -> bool:
        return self._resolve_with_rank(class_name) is not None

    def generate(self, class_names: Iterable[str]) -> list[CssRule]:
        """Return rules for the resolvable names in a deterministic order.

        Base rules come first, followed by each media variant in breakpoint
        order. Within a group rules follow category order, then class name.
        """

        ranked: list[tuple[tuple[int, int, str], CssRule]] = []
        unknown = 0
        for name in set(class_names):
            resolved = self._resolve_with_rank(name)
            if resolved is None:
                unknown += 1
                continue
            ranked.append(resolved)
        if unknown:
            logger.debug("Ignored %s unknown utility class names", unknown)
        ranked.sort(key=lambda item: item[0])
        return [rule for _, rule in ranked]

    def _resolve_with_rank(self, class_name: str) -> tuple[tuple[int, int, str], CssRule] | None:
        *variants, base = class_name.split(":")
        if not base:
            return None
        important = base.startswith("!")
        if important:
            base = base[1:]
        resolved = self._resolve_base(base)
        if resolved is None:
            return None
        category, declarations = resolved

        pseudo = ""
        media: str | None = None
        media_rank = 0
        for variant in variants:
            if variant in PSEUDO_VARIANTS:
                pseudo += PSEUDO_VARIANTS[variant]
            elif variant in MEDIA_VARIANTS and media is None:
                media = MEDIA_VARIANTS[variant]
                media_rank = list(MEDIA_VARIANTS).index(variant) + 1
            else:
                return None

        if important:
            declarations = tuple((prop, f"{value}!important") for prop, value in declarations)
        rule = CssRule(f".{css_escape(class_name)}{pseudo}", declarations, media)
        return (media_rank, _CATEGORY_ORDER.index(category), class_name), rule

    def _resolve_base(self, name: str) -> tuple[str, Declarations] | None:
        if name in self._extensions:
            return "extensions", self._extensions[name]
        for category, table in _STATIC.items():
            if name in table:
                return category, table[name]
        for category, resolver in _RESOLVERS:
            declarations = resolver(name)
            if declarations is not None:
                return category, declarations
        return None
