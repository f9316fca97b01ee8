"""
Product Matcher -- resolves a line item to a catalog product.

Contract:
    ``ProductMatcher(snapshot, policy).match(line)`` returns a MatchResult.
    The snapshot is sorted by product id on construction and never re-read,
    so repeated calls with the same inputs return equal results.

Invariants enforced:
    - Tie-break: the first candidate (in id order) reaching the strict
      maximum score wins.
    - ``matched_product_id`` is set iff best score >= ``min_confidence``.
    - An empty snapshot yields an unmatched result in the fallback category.
"""

from __future__ import annotations

from collections.abc import Iterable

from inventory_kernel.domain.normalizer import normalize_product_name
from inventory_kernel.domain.scoring import (
    CandidateScore,
    MatchingPolicy,
    resolve_variant,
    score_candidate,
)
from inventory_kernel.domain.types import CatalogProduct, LineItem, MatchResult


class ProductMatcher:
    """Deterministic fuzzy matcher over an immutable catalog snapshot."""

    def __init__(
        self,
        snapshot: Iterable[CatalogProduct],
        policy: MatchingPolicy | None = None,
    ):
        self._policy = policy or MatchingPolicy()
        self._products: tuple[CatalogProduct, ...] = tuple(
            sorted(snapshot, key=lambda p: p.id)
        )

    @property
    def policy(self) -> MatchingPolicy:
        return self._policy

    @property
    def products(self) -> tuple[CatalogProduct, ...]:
        return self._products

    def best_candidate(self, line: LineItem) -> CandidateScore | None:
        """Highest-scoring candidate regardless of threshold (None if no catalog)."""
        name = normalize_product_name(line.raw_product_name)
        best: CandidateScore | None = None
        for product in self._products:
            candidate = score_candidate(name, line.raw_category, product, self._policy)
            if best is None or candidate.score > best.score:
                best = candidate
        return best

    def match(self, line: LineItem) -> MatchResult:
        best = self.best_candidate(line)
        if best is None or best.score < self._policy.min_confidence:
            return MatchResult(
                category=self._policy.fallback_category,
                sub_category="",
                confidence=best.score if best is not None else 0,
            )
        product = best.product
        return MatchResult(
            category=product.category or self._policy.fallback_category,
            sub_category=product.sub_category,
            confidence=min(best.score, 100),
            matched_product_id=product.id,
            matched_product_name=product.name,
            matched_color=resolve_variant(
                best.matched_color, product.colors, self._policy.default_variant,
            ),
            matched_size=resolve_variant(
                best.matched_size, product.sizes, self._policy.default_variant,
            ),
        )
