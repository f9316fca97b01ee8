"""
Name Normalizer -- pure text transforms for free-text product descriptions.

Source systems decorate product names with codes (``[SB42] SOLACE-BLACK 42``,
``(CV90) Canvas``, ``BW30: Bottle``, ``SB42 - Solace``) and inconsistent
spacing around dashes.  Everything here is ZERO I/O and deterministic.

Invariants enforced:
    - ``normalize_product_name`` never lengthens its input.
    - ``normalize_product_name`` is a fixed point:
      ``normalize_product_name(normalize_product_name(x)) == normalize_product_name(x)``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

_BRACKET_CODE = re.compile(r"^\[[^\]]+\]\s*")
_PAREN_CODE = re.compile(r"^\([^)]+\)\s*")
_COLON_CODE = re.compile(r"^[A-Z0-9]{2,6}:\s+")
_DASH_CODE = re.compile(r"^[A-Z0-9]{2,6}\s-\s")
_WHITESPACE = re.compile(r"\s+")
_DASH_SPACING = re.compile(r"\s*-\s*")

_CODE_CAPTURE = (
    re.compile(r"^\[([^\]]+)\]"),
    re.compile(r"^\(([^)]+)\)"),
    re.compile(r"^([A-Z0-9]{2,6}):\s+"),
    re.compile(r"^([A-Z0-9]{2,6})\s-\s"),
)

TOKEN_SPLIT = re.compile(r"[\s\-_]+")

DEFAULT_COLOR_WORDS: tuple[str, ...] = (
    "black", "beigh", "beige", "white", "red", "blue",
    "green", "yellow", "grey", "gray", "brown", "pink", "navy",
)
DEFAULT_SIZE_WORDS: tuple[str, ...] = (
    "xs", "s", "m", "l", "xl", "2xl", "3xl", "xxl", "xxxl",
)


def _normalize_once(value: str) -> str:
    value = _WHITESPACE.sub(" ", value).strip()
    value = _BRACKET_CODE.sub("", value)
    value = _PAREN_CODE.sub("", value)
    value = _COLON_CODE.sub("", value)
    value = _DASH_CODE.sub("", value)
    value = _WHITESPACE.sub(" ", value)
    value = _DASH_SPACING.sub("-", value)
    return value.strip()


def normalize_product_name(raw: str | None) -> str:
    """Strip code decorations and normalize spacing.

    Steps: strip one leading ``[CODE]`` or ``(CODE)``, strip a leading
    2-6 character upper-case code followed by ``: `` or `` - ``, collapse
    whitespace, tighten dashes.  Repeated until stable so stacked prefixes
    (``(A) [B] name``) normalize in one call.
    """
    if not raw:
        return ""
    current = raw
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return nxt
        current = nxt


def extract_product_code(raw: str | None) -> str | None:
    """Return the leading code decoration of ``raw`` (``[SB42] x`` -> ``SB42``)."""
    if not raw:
        return None
    stripped = raw.strip()
    for pattern in _CODE_CAPTURE:
        m = pattern.match(stripped)
        if m:
            code = m.group(1).strip()
            return code or None
    return None


def strip_bracket_code(raw: str | None) -> str:
    """Remove only a leading ``[CODE]`` and lowercase (cross-source comparison)."""
    if not raw:
        return ""
    return _BRACKET_CODE.sub("", raw.strip()).strip().lower()


def normalize_product_code(
    code: str,
    variant_prefixes: Mapping[str, str] | None = None,
) -> str:
    """Fold known code-prefix families together.

    ``SBE28`` -> ``sb28``, ``BWS30`` -> ``bw30``, ``CVS90`` -> ``cv90``; a
    variant prefix is only rewritten when a digit follows it.  Non
    alphanumerics are dropped.
    """
    prefixes = variant_prefixes if variant_prefixes is not None else {
        "sbe": "sb", "bws": "bw", "cvs": "cv",
    }
    folded = re.sub(r"[^a-z0-9]", "", code.lower())
    # Longest variant first so overlapping families resolve deterministically
    for variant in sorted(prefixes, key=len, reverse=True):
        if folded.startswith(variant) and folded[len(variant):][:1].isdigit():
            return prefixes[variant] + folded[len(variant):]
    return folded


def tokenize(value: str) -> list[str]:
    """Split on whitespace, dashes and underscores, dropping empty tokens."""
    return [t for t in TOKEN_SPLIT.split(value) if t]


def extract_base_product_name(
    raw: str | None,
    color_words: Iterable[str] = DEFAULT_COLOR_WORDS,
    size_words: Iterable[str] = DEFAULT_SIZE_WORDS,
) -> str:
    """Product name with code, color suffixes and trailing size removed.

    ``[SB42] SOLACE-BLACK 42`` -> ``solace``.  Lower-cased; used to group
    variants of one product and to compare names across sources.
    """
    name = strip_bracket_code(raw)
    colors = "|".join(re.escape(c.lower()) for c in color_words)
    sizes = "|".join(re.escape(s.lower()) for s in size_words)
    if colors:
        name = re.sub(rf"\s*-\s*(?:{colors})\b", "", name)
    size_alt = rf"(?:{sizes}|\d+)" if sizes else r"\d+"
    name = re.sub(rf"\s+{size_alt}$", "", name)
    name = _WHITESPACE.sub(" ", name)
    return name.strip()
