"""
Target period parsing.

Turns a human-entered months label (``"Q1"``, ``"07,08,09"``, ``"July"``,
``"Jan, Feb"``) into a sorted tuple of month numbers and an inclusive date
range for a given year.  Pure functions, ZERO I/O.

Precedence:
    1. Comma-separated numeric list (``"07,08,09"``, ``"7, 8"``).
    2. Quarter keyword ``Q1``..``Q4``.
    3. Month-name substring match (full names and three-letter abbreviations).
    4. Nothing recognised -> empty tuple, meaning the full calendar year.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from inventory_kernel.domain.types import CategoryTarget, DateRange
from inventory_kernel.exceptions import InvalidYearError

QUARTERS: dict[str, tuple[int, ...]] = {
    "q1": (1, 2, 3),
    "q2": (4, 5, 6),
    "q3": (7, 8, 9),
    "q4": (10, 11, 12),
}

_MONTH_NAMES: tuple[tuple[str, int], ...] = tuple(
    (calendar.month_name[m].lower(), m) for m in range(1, 13)
)
_MONTH_ABBREVIATIONS: tuple[tuple[str, int], ...] = tuple(
    (calendar.month_abbr[m].lower(), m) for m in range(1, 13)
)
_NUMERIC_LIST = re.compile(r"^\s*\d{1,2}\s*(,\s*\d{1,2}\s*)*,?\s*$")
_QUARTER = re.compile(r"\bq([1-4])\b")


def parse_months_spec(months_spec: str | None) -> tuple[int, ...]:
    """Parse a months label into sorted unique month numbers (1-12)."""
    if not months_spec or not months_spec.strip():
        return ()
    text = months_spec.strip().lower()

    if _NUMERIC_LIST.match(text):
        months = {int(p) for p in text.split(",") if p.strip()}
        return tuple(sorted(m for m in months if 1 <= m <= 12))

    quarter = _QUARTER.search(text)
    if quarter:
        return QUARTERS[f"q{quarter.group(1)}"]

    found: set[int] = set()
    for name, month in _MONTH_NAMES:
        if name in text:
            found.add(month)
    if not found:
        for abbr, month in _MONTH_ABBREVIATIONS:
            if abbr in text:
                found.add(month)
    return tuple(sorted(found))


def period_date_range(months: Iterable[int], year: int) -> DateRange:
    """Inclusive ``[min-01, last day of max]``; no months means the full year."""
    if not 1 <= year <= 9999:
        raise InvalidYearError(year)
    month_list = sorted(set(months))
    if not month_list:
        return DateRange(date(year, 1, 1), date(year, 12, 31))
    first, last = month_list[0], month_list[-1]
    last_day = calendar.monthrange(year, last)[1]
    return DateRange(date(year, first, 1), date(year, last, last_day))


def months_spec_to_range(months_spec: str | None, year: int) -> DateRange:
    return period_date_range(parse_months_spec(months_spec), year)


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except ArithmeticError:
        return Decimal("0")


def parse_target_categories(target_data: Mapping[str, Any] | None) -> tuple[CategoryTarget, ...]:
    """Extract category targets from a loosely structured target payload.

    Recognised shapes, in order:
        ``{"categories": [{"category": "Bags", "amount": 1000}, ...]}``
        ``{"product_category": "Bags", "amount": 1000}``
        any key containing ``category`` whose value is a non-empty string,
        paired with ``amount`` / ``target_amount`` when present.
    """
    if not target_data:
        return ()
    amount = _to_decimal(target_data.get("amount", target_data.get("target_amount")))

    categories = target_data.get("categories")
    if isinstance(categories, list) and categories:
        out: list[CategoryTarget] = []
        for entry in categories:
            if isinstance(entry, Mapping):
                name = str(entry.get("category") or entry.get("name") or "").strip()
                if name:
                    out.append(CategoryTarget(
                        category=name,
                        amount=_to_decimal(entry.get("amount", entry.get("target_amount"))),
                    ))
            elif isinstance(entry, str) and entry.strip():
                out.append(CategoryTarget(category=entry.strip(), amount=amount))
        return tuple(out)

    product_category = target_data.get("product_category")
    if isinstance(product_category, str) and product_category.strip():
        return (CategoryTarget(category=product_category.strip(), amount=amount),)

    for key in sorted(target_data):
        value = target_data[key]
        if "category" in key.lower() and isinstance(value, str) and value.strip():
            return (CategoryTarget(category=value.strip(), amount=amount),)
    return ()
