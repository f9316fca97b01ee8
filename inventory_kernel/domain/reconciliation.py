"""
Cross-source reconciliation report.

Pairs the lines one source recorded for a document (e.g. the local copy of
an invoice) with the lines another source recorded for it (the ERP export)
using ``products_equivalent`` and reports quantity differences.  Pure,
ZERO I/O.

Pairing is greedy and deterministic: lines are first aggregated per name
(quantities summed, first-seen order kept), then each local entry takes the
first unpaired external entry it is equivalent to.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from inventory_kernel.domain.equivalence import EquivalenceReason, products_equivalent
from inventory_kernel.domain.types import LineItem


@dataclass(frozen=True)
class ReconciledPair:
    local_name: str
    external_name: str
    local_quantity: int
    external_quantity: int
    reason: EquivalenceReason

    @property
    def difference(self) -> int:
        """Local minus external quantity."""
        return self.local_quantity - self.external_quantity


@dataclass(frozen=True)
class UnpairedLine:
    product_name: str
    quantity: int


@dataclass(frozen=True)
class ReconciliationReport:
    pairs: tuple[ReconciledPair, ...] = ()
    local_only: tuple[UnpairedLine, ...] = ()
    external_only: tuple[UnpairedLine, ...] = ()

    @property
    def is_balanced(self) -> bool:
        return (
            not self.local_only
            and not self.external_only
            and all(p.difference == 0 for p in self.pairs)
        )


def _aggregate(lines: Iterable[LineItem]) -> list[UnpairedLine]:
    totals: dict[str, int] = {}
    for line in lines:
        name = line.raw_product_name.strip()
        totals[name] = totals.get(name, 0) + line.quantity
    return [UnpairedLine(name, qty) for name, qty in totals.items()]


def compare_sources(
    local_lines: Iterable[LineItem],
    external_lines: Iterable[LineItem],
    *,
    similarity_threshold: float = 0.8,
    variant_prefixes: Mapping[str, str] | None = None,
) -> ReconciliationReport:
    """Pair equivalent products across two sources and report differences."""
    local = _aggregate(local_lines)
    external = _aggregate(external_lines)
    used = [False] * len(external)

    pairs: list[ReconciledPair] = []
    local_only: list[UnpairedLine] = []
    for entry in local:
        for i, candidate in enumerate(external):
            if used[i]:
                continue
            equivalence = products_equivalent(
                entry.product_name,
                candidate.product_name,
                similarity_threshold=similarity_threshold,
                variant_prefixes=variant_prefixes,
            )
            if equivalence is not None:
                used[i] = True
                pairs.append(ReconciledPair(
                    local_name=entry.product_name,
                    external_name=candidate.product_name,
                    local_quantity=entry.quantity,
                    external_quantity=candidate.quantity,
                    reason=equivalence.reason,
                ))
                break
        else:
            local_only.append(entry)

    return ReconciliationReport(
        pairs=tuple(pairs),
        local_only=tuple(local_only),
        external_only=tuple(e for e, taken in zip(external, used) if not taken),
    )
