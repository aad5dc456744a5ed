"""
Tests for money utilities
"""

from decimal import Decimal

import pytest

from shopcart.errors import ValidationError
from shopcart.money import (
    clamp_non_negative,
    format_money,
    parse_amount,
    round_money,
    to_decimal,
    to_float,
)


class TestMoney:

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("garbage") == Decimal("0")

    def test_parse_amount(self):
        assert parse_amount(" 12.50 ") == Decimal("12.50")
        assert parse_amount(3) == Decimal("3")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", None, True])
    def test_parse_amount_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    def test_round_money_half_up(self):
        assert round_money("2.675") == Decimal("2.68")
        assert round_money("2.674") == Decimal("2.67")

    def test_clamp(self):
        assert clamp_non_negative("-1") == Decimal("0")
        assert clamp_non_negative("1.5") == Decimal("1.5")

    def test_format_money(self):
        assert format_money("1234.5") == "$1,234.50"
        assert format_money("10", "EUR") == "€10.00"
        assert format_money("10", "XYZ") == "10.00 XYZ"

    def test_to_float(self):
        assert to_float(Decimal("18.00")) == 18.0
