"""Tests for price formatting."""

from __future__ import annotations

import pytest

from woo_catalog_server.utils.money import format_money


class TestFormatMoney:

    @pytest.mark.parametrize("value,expected", [
        ("19.99", "1999"),
        ("10", "1000"),
        (5.5, "550"),
        ("0.005", "1"),
    ])
    def test_raw_is_minor_units(self, value, expected):
        assert format_money(value, "raw") == expected

    def test_formatted(self):
        assert format_money("19.99", "formatted") == "$19.99"

    def test_formatted_thousands_and_symbol(self):
        assert format_money("1234.5", "formatted", symbol="€") == "€1,234.50"

    def test_zero_decimals(self):
        assert format_money("1500", "raw", decimals=0) == "1500"

    @pytest.mark.parametrize("value", [None, "", "n/a"])
    def test_empty_or_invalid(self, value):
        assert format_money(value, "formatted") == ""
