"""
Unit tests for precision-safe money arithmetic.

Tests cover:
- Conversion of floats, strings and None
- Percentage and rounding rules
- Commission base with tax and shipping exclusion
"""

from decimal import Decimal

import pytest

from affiliate_engine.utils.decimal_math import (
    ZERO,
    clamp,
    div,
    eq,
    from_order,
    percent,
    quantize_money,
    to_decimal,
)


class TestToDecimal:
    """Test value conversion."""

    def test_float_goes_through_str(self):
        """0.1 must not carry its binary expansion."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_none_is_zero(self):
        assert to_decimal(None) == ZERO

    def test_string_and_int(self):
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(7) == Decimal("7")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_invalid_values_rejected(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestPercentAndRounding:
    """Test percentage and cent rounding."""

    def test_percent_of_base(self):
        assert percent(Decimal("100"), Decimal("15")) == Decimal("15")

    def test_sum_of_small_amounts_is_exact(self):
        """0.1 + 0.2 == 0.3 in decimal arithmetic."""
        total = to_decimal(0.1) + to_decimal(0.2)
        assert total == Decimal("0.3")

    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("2.345")) == Decimal("2.35")
        assert quantize_money(Decimal("2.344")) == Decimal("2.34")

    def test_division_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            div(Decimal("1"), Decimal("0"))

    def test_clamp_bounds(self):
        assert clamp(Decimal("-5"), ZERO) == ZERO
        assert clamp(Decimal("150"), ZERO, Decimal("100")) == Decimal("100")

    def test_eq_across_representations(self):
        assert eq(0.1, "0.10")
        assert not eq("15.00", "15.01")


class TestCommissionBase:
    """Test commission base calculation for a line."""

    def test_excludes_tax_and_shipping(self):
        base = from_order(Decimal("115"), Decimal("10"), Decimal("5"), True, True)
        assert base == Decimal("100")

    def test_keeps_tax_when_not_excluded(self):
        base = from_order(Decimal("115"), Decimal("10"), Decimal("5"), False, True)
        assert base == Decimal("110")

    def test_never_negative(self):
        base = from_order(Decimal("5"), Decimal("10"), Decimal("5"), True, True)
        assert base == ZERO
