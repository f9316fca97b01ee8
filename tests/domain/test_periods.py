"""Tests for months-spec parsing, period ranges and target categories."""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from inventory_kernel.domain.periods import (
    months_spec_to_range,
    parse_months_spec,
    parse_target_categories,
    period_date_range,
)
from inventory_kernel.domain.types import CategoryTarget
from inventory_kernel.exceptions import InvalidYearError


class TestParseMonthsSpec:

    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("07,08,09", (7, 8, 9)),
            ("7, 8", (7, 8)),
            ("12,1", (1, 12)),
            ("Q1", (1, 2, 3)),
            ("q4 2024", (10, 11, 12)),
            ("July", (7,)),
            ("July and August", (7, 8)),
            ("Jan, Feb", (1, 2)),
            ("Sept", (9,)),
            ("Sept-Oct", (9, 10)),
            ("dec2024", (12,)),
            ("", ()),
            (None, ()),
            ("whenever", ()),
        ],
    )
    def test_precedence(self, spec, expected):
        assert parse_months_spec(spec) == expected

    def test_out_of_range_numbers_dropped(self):
        assert parse_months_spec("0,13,5") == (5,)


class TestDateRange:

    def test_third_quarter_comma_list(self):
        rng = months_spec_to_range("07,08,09", 2024)
        assert rng.start == date(2024, 7, 1)
        assert rng.end == date(2024, 9, 30)

    def test_empty_is_full_year(self):
        rng = months_spec_to_range("", 2023)
        assert (rng.start, rng.end) == (date(2023, 1, 1), date(2023, 12, 31))

    def test_leap_february(self):
        assert months_spec_to_range("February", 2024).end == date(2024, 2, 29)

    def test_invalid_year(self):
        with pytest.raises(InvalidYearError):
            period_date_range([1], 0)

    @given(st.sets(st.integers(min_value=1, max_value=12), min_size=1), st.integers(1900, 2100))
    def test_range_spans_min_to_max_month(self, months, year):
        rng = period_date_range(months, year)
        assert rng.start == date(year, min(months), 1)
        assert rng.end.month == max(months)
        assert rng.contains(rng.start) and rng.contains(rng.end)


class TestParseTargetCategories:

    def test_categories_list(self):
        targets = parse_target_categories({
            "categories": [{"category": "Bags", "amount": 1000}, {"name": "Shoes", "amount": "250.5"}],
        })
        assert targets == (
            CategoryTarget("Bags", Decimal("1000")),
            CategoryTarget("Shoes", Decimal("250.5")),
        )

    def test_product_category(self):
        assert parse_target_categories({"product_category": "Bags", "amount": 10}) == (
            CategoryTarget("Bags", Decimal("10")),
        )

    def test_any_category_key(self):
        assert parse_target_categories({"main_category": "Belts", "target_amount": 5}) == (
            CategoryTarget("Belts", Decimal("5")),
        )

    def test_nothing(self):
        assert parse_target_categories({}) == ()
        assert parse_target_categories(None) == ()
