"""
Cross-source product equivalence.

Used when two *sources* describe the same physical item differently (a
locally recorded invoice vs. the external ERP export), independent of
catalog matching.  Pure functions, ZERO I/O.

Strategy order (first hit wins):
    1. Names equal after removing a leading ``[CODE]`` (case-insensitive).
    2. Both carry bracket codes that are equal after code-family folding
       (``SB28`` == ``SBE28``).
    3. Base names equal (color suffixes and trailing size removed).
    4. Levenshtein similarity of base names above ``similarity_threshold``.
    5. One base name contains the other.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from rapidfuzz.distance import Levenshtein

from inventory_kernel.domain.normalizer import (
    extract_base_product_name,
    normalize_product_code,
    strip_bracket_code,
)

_BRACKET_ANYWHERE = re.compile(r"\[([^\]]+)\]")


class EquivalenceReason(str, Enum):
    EXACT = "exact"
    PRODUCT_CODE = "product_code"
    BASE_NAME = "base_name"
    SIMILARITY = "similarity"
    CONTAINMENT = "containment"


@dataclass(frozen=True)
class Equivalence:
    reason: EquivalenceReason
    similarity: float = 1.0


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    return Levenshtein.distance(a, b)


def similarity_ratio(a: str, b: str) -> float:
    """1 - distance / len(longer); two empty strings are identical (1.0)."""
    return Levenshtein.normalized_similarity(a, b)


def products_equivalent(
    left: str,
    right: str,
    *,
    similarity_threshold: float = 0.8,
    variant_prefixes: Mapping[str, str] | None = None,
) -> Equivalence | None:
    """Decide whether two source product descriptions denote the same item."""
    clean_left = strip_bracket_code(left)
    clean_right = strip_bracket_code(right)
    if not clean_left or not clean_right:
        return None
    if clean_left == clean_right:
        return Equivalence(EquivalenceReason.EXACT)

    left_code = _BRACKET_ANYWHERE.search(left)
    right_code = _BRACKET_ANYWHERE.search(right)
    if left_code and right_code:
        if normalize_product_code(left_code.group(1), variant_prefixes) == (
            normalize_product_code(right_code.group(1), variant_prefixes)
        ):
            return Equivalence(EquivalenceReason.PRODUCT_CODE)

    base_left = extract_base_product_name(left)
    base_right = extract_base_product_name(right)
    if base_left and base_left == base_right:
        return Equivalence(EquivalenceReason.BASE_NAME)

    ratio = similarity_ratio(base_left, base_right)
    if ratio > similarity_threshold:
        return Equivalence(EquivalenceReason.SIMILARITY, similarity=ratio)

    if base_left and base_right and (base_left in base_right or base_right in base_left):
        return Equivalence(EquivalenceReason.CONTAINMENT, similarity=ratio)
    return None
