"""Tests for achievement aggregation over ERP invoice lines."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from inventory_ingestion.adapters.readers import TableInvoiceReader
from inventory_ingestion.models.sources import ExternalInvoiceModel
from inventory_ingestion.services.achievement_source import (
    InvoiceAchievementSource,
    decode_amount_line,
)
from inventory_kernel.domain.types import (
    CategoryTarget,
    DateRange,
    LineItem,
    TargetPeriod,
)
from inventory_kernel.services.achievement_service import (
    AchievementCalculator,
    achievement_percentage,
)


class _StaticLines:
    def __init__(self, lines):
        self.lines = lines
        self.periods = []

    def lines_for_customer(self, customer_name, period):
        self.periods.append(period)
        return list(self.lines)


def _line(category, qty, price, subtotal=None):
    return LineItem("x", qty, Decimal(price), raw_category=category,
                    subtotal=Decimal(subtotal) if subtotal is not None else None)


class TestAchievementCalculator:

    def test_sums_per_requested_category(self):
        source = _StaticLines([
            _line("Bags", 2, "100"),
            _line("bags ", 1, "50"),
            _line("Shoes", 1, "80"),
            _line("Belts", 3, "10"),
        ])
        result = AchievementCalculator(source).compute_achievement("Ada", "Q3", 2024, ["Bags", "Shoes", "Hats"])

        assert [(r.category, r.achieved) for r in result] == [
            ("Bags", Decimal("250")), ("Shoes", Decimal("80")), ("Hats", Decimal("0")),
        ]
        assert source.periods[0].start.month == 7
        assert source.periods[0].end.day == 30

    def test_delivered_amount_preferred_over_subtotal(self):
        source = _StaticLines([
            _line("Bags", 2, "100", subtotal="999"),
            _line("Bags", 0, "0", subtotal="40"),
        ])
        [row] = AchievementCalculator(source).compute_achievement("Ada", "", 2024, ["Bags"])
        assert row.achieved == Decimal("240")

    def test_duplicate_categories_reported_once(self):
        result = AchievementCalculator(_StaticLines([])).compute_achievement("Ada", "", 2024, ["Bags", "bags"])
        assert len(result) == 1

    def test_breakdown_with_zero_target(self):
        target = TargetPeriod(
            customer_name="Ada",
            year=2024,
            months_spec="07,08,09",
            category_targets=(
                CategoryTarget("Bags", Decimal("1000")),
                CategoryTarget("Shoes", Decimal("0")),
            ),
        )
        source = _StaticLines([_line("Bags", 5, "50"), _line("Shoes", 1, "10")])

        rows = AchievementCalculator(source).compute_breakdown(target)

        assert rows[0].achievement_pct == Decimal("25.00")
        assert rows[1].achieved == Decimal("10")
        assert rows[1].achievement_pct == Decimal("0.00")


@pytest.mark.parametrize(
    "achieved, target, expected",
    [("0", "0", "0.00"), ("50", "0", "0.00"), ("1", "3", "33.33"), ("2", "3", "66.67")],
)
def test_achievement_percentage(achieved, target, expected):
    assert achievement_percentage(Decimal(achieved), Decimal(target)) == Decimal(expected)


class TestDecodeAmountLine:

    def test_delivered_times_price(self):
        line = decode_amount_line({"name": "Tote", "qty_delivered": 2, "price_unit": 5, "category": "Bags"}, "I")
        assert line.amount == Decimal("10")

    def test_ordered_quantity_is_not_delivered(self):
        raw = {"name": "Tote", "qty_delivered": 0, "quantity": 5, "price_unit": 100,
               "price_total": 0, "category": "Bags"}
        assert decode_amount_line(raw, "I").amount == Decimal("0")
        assert decode_amount_line({"name": "Tote", "quantity": 5, "price_unit": 100}, "I") is None

    def test_fractional_delivery_keeps_amount(self):
        line = decode_amount_line({"name": "Tote", "quantityDelivered": "1.5", "price_unit": 10}, "I")
        assert line.amount == Decimal("15.0")

    def test_name_from_product_ref(self):
        line = decode_amount_line({"product_id": [7, "[SB42] SOLACE"], "qty_delivered": 1, "price_unit": 3}, "I")
        assert line.raw_product_name == "[SB42] SOLACE"

    def test_undelivered_line_with_subtotal(self):
        line = decode_amount_line({"name": "Tote", "qty_delivered": 0, "price_total": "75", "category": "Bags"}, "I")
        assert line.quantity == 0
        assert line.amount == Decimal("75")
        assert line.raw_category == "Bags"

    def test_nothing_to_count(self):
        assert decode_amount_line({"name": "Tote", "qty_delivered": 0}, "I") is None
        assert decode_amount_line("junk", "I") is None


class TestInvoiceAchievementSource:

    def test_filters_customer_and_period(self, session, create_erp_invoice):
        lines = [{"name": "Tote", "product_category": "Bags", "qty_delivered": 2, "price_unit": 100}]
        create_erp_invoice("A", "Ada Stores", lines, date_order=datetime(2024, 7, 1, tzinfo=timezone.utc))
        create_erp_invoice("B", " ada stores", lines, date_order=datetime(2024, 9, 30, 23, tzinfo=timezone.utc))
        create_erp_invoice("C", "Ada Stores", lines, date_order=datetime(2024, 10, 1, tzinfo=timezone.utc))
        create_erp_invoice("D", "Other", lines, date_order=datetime(2024, 8, 1, tzinfo=timezone.utc))
        create_erp_invoice("E", "Ada Stores", "{broken", date_order=datetime(2024, 8, 1, tzinfo=timezone.utc))

        source = InvoiceAchievementSource(session, TableInvoiceReader(ExternalInvoiceModel, "external_erp"))
        period = DateRange(date(2024, 7, 1), date(2024, 9, 30))

        found = list(source.lines_for_customer("Ada Stores", period))

        assert len(found) == 2
        assert all(line.raw_category == "Bags" for line in found)

    def test_end_to_end_achievement(self, session, create_erp_invoice):
        create_erp_invoice("A", "Ada Stores", [
            {"name": "Tote", "product_category": "Bags", "qty_delivered": 2, "price_unit": 100},
            {"name": "Solace", "product_category": "Shoes", "qty_delivered": 0, "price_subtotal": 60},
        ], date_order=datetime(2024, 2, 10, tzinfo=timezone.utc))

        source = InvoiceAchievementSource(session, TableInvoiceReader(ExternalInvoiceModel, "external_erp"))
        result = AchievementCalculator(source).compute_achievement("Ada Stores", "Q1", 2024, ["Bags", "Shoes"])

        assert {r.category: r.achieved for r in result} == {"Bags": Decimal("200"), "Shoes": Decimal("60")}
