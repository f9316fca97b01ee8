"""Tests for product name normalization and code helpers."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from inventory_kernel.domain.normalizer import (
    extract_base_product_name,
    extract_product_code,
    normalize_product_code,
    normalize_product_name,
    strip_bracket_code,
    tokenize,
)


class TestNormalizeProductName:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("[SB42] SOLACE-BLACK 42", "SOLACE-BLACK 42"),
            ("(CV90) Canvas Tote", "Canvas Tote"),
            ("BW30: Bottle", "Bottle"),
            ("SB42 - Solace", "Solace"),
            ("  Solace   Black  ", "Solace Black"),
            ("Solace - Black", "Solace-Black"),
            ("Solace  -Black", "Solace-Black"),
            ("", ""),
        ],
    )
    def test_known_decorations(self, raw, expected):
        assert normalize_product_name(raw) == expected

    def test_none_is_empty(self):
        assert normalize_product_name(None) == ""

    def test_lowercase_prefix_is_not_a_code(self):
        assert normalize_product_name("ab: thing") == "ab: thing"

    def test_stacked_prefixes_collapse_in_one_call(self):
        assert normalize_product_name("(A1) [SB42] Solace") == "Solace"

    @given(st.text(max_size=80))
    @settings(max_examples=300)
    def test_idempotent(self, raw):
        once = normalize_product_name(raw)
        assert normalize_product_name(once) == once

    @given(st.text(max_size=80))
    @settings(max_examples=300)
    def test_never_lengthens(self, raw):
        assert len(normalize_product_name(raw)) <= len(raw)


class TestProductCodes:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("[SB42] SOLACE-BLACK 42", "SB42"),
            ("(CV90) Canvas", "CV90"),
            ("BW30: Bottle", "BW30"),
            ("SB42 - Solace", "SB42"),
            ("Solace", None),
            (None, None),
        ],
    )
    def test_extract_product_code(self, raw, expected):
        assert extract_product_code(raw) == expected

    @pytest.mark.parametrize(
        "left, right",
        [("SB28", "SBE28"), ("BW30", "BWS30"), ("CV90", "CVS90"), ("sb-28", "SB28")],
    )
    def test_code_families_fold(self, left, right):
        assert normalize_product_code(left) == normalize_product_code(right)

    def test_variant_prefix_needs_a_digit(self):
        assert normalize_product_code("SBEX") == "sbex"

    def test_custom_prefixes(self):
        assert normalize_product_code("XYZ1", {"xyz": "x"}) == "x1"

    def test_strip_bracket_code_lowercases(self):
        assert strip_bracket_code("[SB42] Solace Black") == "solace black"


class TestBaseName:

    def test_color_and_size_removed(self):
        assert extract_base_product_name("[SB42] SOLACE-BLACK 42") == "solace"

    def test_letter_size_removed(self):
        assert extract_base_product_name("Runner-White XL") == "runner"

    def test_plain_name_kept(self):
        assert extract_base_product_name("Canvas Tote") == "canvas tote"


class TestTokenize:

    def test_splits_on_space_dash_underscore(self):
        assert tokenize("solace-black_42 x") == ["solace", "black", "42", "x"]

    def test_drops_empty(self):
        assert tokenize("--a  b--") == ["a", "b"]
