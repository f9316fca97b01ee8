"""
Similarity Scorer -- explainable 0-100 confidence between a line item and a
catalog product.

Pure functions, ZERO I/O.  Weights live in ``MatchingPolicy`` so the config
layer can tune them without touching this module.

Scoring (applied to normalized, lower-cased names):
    category containment either way      +category_weight   (30)
    exact name                           +exact_name_weight (50)
    else name containment either way     +contains_weight   (35)
    else token overlap                   +min(token_cap, token_weight * n)  (25, 8)
    color token present in line name     +color_weight      (10)
    size token present in line name      +size_weight       (5)

Edge cases:
    - An empty category on either side never earns the category bonus
      (an empty string would otherwise "contain" into everything).
    - Tokens shorter than ``min_token_length`` never count toward overlap.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_kernel.domain.normalizer import normalize_product_name, tokenize
from inventory_kernel.domain.types import (
    DEFAULT_VARIANT,
    GENERAL_CATEGORY,
    CatalogProduct,
)


@dataclass(frozen=True)
class MatchingPolicy:
    """Tunable weights and thresholds for product matching."""

    min_confidence: int = 30
    category_weight: int = 30
    exact_name_weight: int = 50
    contains_weight: int = 35
    token_weight: int = 8
    token_cap: int = 25
    min_token_length: int = 3
    color_weight: int = 10
    size_weight: int = 5
    default_variant: str = DEFAULT_VARIANT
    fallback_category: str = GENERAL_CATEGORY
    code_variant_prefixes: dict[str, str] = field(
        default_factory=lambda: {"sbe": "sb", "bws": "bw", "cvs": "cv"},
    )


@dataclass(frozen=True)
class CandidateScore:
    """Score of one candidate with the parts that produced it."""

    product: CatalogProduct
    score: int
    category_points: int = 0
    name_points: int = 0
    color_points: int = 0
    size_points: int = 0
    matched_color: str | None = None
    matched_size: str | None = None

def resolve_variant(
    matched: str | None,
    declared: tuple[str, ...],
    default: str = DEFAULT_VARIANT,
) -> str:
    """Matched variant, else the first declared one, else ``default``."""
    if matched:
        return matched
    if declared:
        return declared[0]
    return default


def category_overlaps(line_category: str, product_category: str) -> bool:
    """True when one non-empty category contains the other (case-insensitive)."""
    a = line_category.strip().lower()
    b = product_category.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def common_token_count(left: str, right: str, min_length: int = 3) -> int:
    """Tokens of ``left`` (len >= min_length) that overlap some token of ``right``.

    Overlap means either token is a substring of the other.
    """
    right_tokens = tokenize(right)
    count = 0
    for token in tokenize(left):
        if len(token) < min_length:
            continue
        if any(token in other or other in token for other in right_tokens):
            count += 1
    return count


def name_points(line_name: str, product_name: str, policy: MatchingPolicy) -> int:
    """Points for name similarity between two normalized, lower-cased names."""
    if not line_name or not product_name:
        return 0
    if line_name == product_name:
        return policy.exact_name_weight
    if line_name in product_name or product_name in line_name:
        return policy.contains_weight
    common = common_token_count(line_name, product_name, policy.min_token_length)
    return min(policy.token_cap, common * policy.token_weight)


def find_variant(line_name: str, declared: tuple[str, ...]) -> str | None:
    """First declared color/size present as a token of ``line_name``.

    Multi-token variants (``Navy Blue``) match when all of their tokens
    appear consecutively in the line name.
    """
    tokens = [t.lower() for t in tokenize(line_name)]
    for variant in declared:
        parts = [p.lower() for p in tokenize(variant)]
        if not parts:
            continue
        width = len(parts)
        for i in range(len(tokens) - width + 1):
            if tokens[i:i + width] == parts:
                return variant
    return None


def score_candidate(
    line_name: str,
    line_category: str,
    product: CatalogProduct,
    policy: MatchingPolicy,
) -> CandidateScore:
    """Score ``product`` against an already-normalized line item name."""
    line_key = line_name.strip().lower()
    product_key = normalize_product_name(product.name).lower()

    category = policy.category_weight if category_overlaps(line_category, product.category) else 0
    name = name_points(line_key, product_key, policy)

    color = find_variant(line_key, product.colors)
    size = find_variant(line_key, product.sizes)
    color_pts = policy.color_weight if color else 0
    size_pts = policy.size_weight if size else 0

    return CandidateScore(
        product=product,
        score=category + name + color_pts + size_pts,
        category_points=category,
        name_points=name,
        color_points=color_pts,
        size_points=size_pts,
        matched_color=color,
        matched_size=size,
    )
