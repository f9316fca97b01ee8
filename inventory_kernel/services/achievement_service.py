"""
AchievementCalculator -- realized sales per category over a target period.

Contract:
    ``compute_achievement(customer_name, months_spec, year, categories)``
    parses the months label into an inclusive date range, asks the injected
    InvoiceLineSource for the customer's invoice lines in that range, and
    sums each line's amount into the requested category it belongs to.

Amount precedence (one place, LineItem.amount):
    delivered quantity * unit price; when that product is zero, the stored
    subtotal of the line; otherwise zero.

Invariants enforced:
    - Categories are reported in the order requested, each exactly once,
      with 0 when nothing matched.
    - Achievement percentage is 0 when the target amount is 0 (never NaN/inf).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, runtime_checkable

from inventory_kernel.domain.periods import months_spec_to_range, parse_months_spec
from inventory_kernel.domain.types import (
    AchievementBreakdownRow,
    CategoryAchievement,
    DateRange,
    LineItem,
    TargetPeriod,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.achievement")

_PCT_QUANTUM = Decimal("0.01")


@runtime_checkable
class InvoiceLineSource(Protocol):
    """Invoice lines billed to one customer within a date range."""

    def lines_for_customer(
        self, customer_name: str, period: DateRange,
    ) -> Iterable[LineItem]: ...


def achievement_percentage(achieved: Decimal, target: Decimal) -> Decimal:
    """achieved / target * 100 rounded to cents; 0 for a zero target."""
    if target == 0:
        return Decimal("0.00")
    return (achieved / target * 100).quantize(_PCT_QUANTUM, rounding=ROUND_HALF_UP)


class AchievementCalculator:
    """Aggregates invoice amounts per category for KPI comparison."""

    def __init__(self, line_source: InvoiceLineSource):
        self._source = line_source

    def compute_achievement(
        self,
        customer_name: str,
        months_spec: str | None,
        year: int,
        categories: Sequence[str],
    ) -> list[CategoryAchievement]:
        period = months_spec_to_range(months_spec, year)
        totals: dict[str, Decimal] = {c.strip().lower(): Decimal("0") for c in categories}

        line_count = 0
        for line in self._source.lines_for_customer(customer_name, period):
            line_count += 1
            key = line.raw_category.strip().lower()
            if key in totals:
                totals[key] += line.amount

        logger.info(
            "achievement_computed",
            extra={
                "customer_name": customer_name,
                "months": list(parse_months_spec(months_spec)),
                "period_start": period.start.isoformat(),
                "period_end": period.end.isoformat(),
                "line_count": line_count,
            },
        )
        seen: set[str] = set()
        results: list[CategoryAchievement] = []
        for category in categories:
            key = category.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            results.append(CategoryAchievement(category=category, achieved=totals[key]))
        return results

    def compute_breakdown(self, target: TargetPeriod) -> list[AchievementBreakdownRow]:
        """Target vs. achieved per category of ``target``."""
        achieved = {
            row.category.strip().lower(): row.achieved
            for row in self.compute_achievement(
                target.customer_name,
                target.months_spec,
                target.year,
                [t.category for t in target.category_targets],
            )
        }
        return [
            AchievementBreakdownRow(
                category=t.category,
                target=t.amount,
                achieved=achieved.get(t.category.strip().lower(), Decimal("0")),
                achievement_pct=achievement_percentage(
                    achieved.get(t.category.strip().lower(), Decimal("0")), t.amount,
                ),
            )
            for t in target.category_targets
        ]
