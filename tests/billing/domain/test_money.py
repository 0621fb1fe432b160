"""Tests for integer-cents arithmetic and currency formatting."""

from decimal import Decimal

import pytest
from billing.shared.money import (
    Cents,
    compute_tax,
    dollars_to_cents,
    format_currency,
    parse_rate,
)
from protean.exceptions import ValidationError


class TestCents:
    def test_arithmetic_stays_in_cents(self):
        total = Cents(1000) + 250 - Cents(50)
        assert total == 1200
        assert isinstance(total, Cents)

    def test_multiplication_by_quantity(self):
        assert Cents(5000) * 2 == Cents(10000)
        assert isinstance(3 * Cents(5), Cents)

    def test_float_is_rejected(self):
        with pytest.raises(TypeError):
            Cents(12.5)

    def test_adding_a_float_is_rejected(self):
        with pytest.raises(TypeError):
            Cents(100) + 0.5

    def test_bool_is_rejected(self):
        with pytest.raises(TypeError):
            Cents(True)

    def test_sum(self):
        assert Cents.sum([100, 200, Cents(300)]) == 600
        assert Cents.sum([]) == 0


class TestTax:
    def test_tax_on_example_subtotal(self):
        assert compute_tax(10000, "0.08") == 800

    def test_half_cent_rounds_up(self):
        # 125 * 0.1 = 12.5
        assert compute_tax(125, "0.1") == 13

    def test_below_half_rounds_down(self):
        # 1234 * 0.0725 = 89.465
        assert compute_tax(1234, "0.0725") == 89

    def test_rounding_is_deterministic(self):
        results = {compute_tax(99999, "0.0825") for _ in range(50)}
        assert results == {8250}

    def test_rate_outside_unit_interval_fails(self):
        with pytest.raises(ValidationError):
            parse_rate("1.5")
        with pytest.raises(ValidationError):
            parse_rate(-0.01)

    def test_rate_must_be_numeric(self):
        with pytest.raises(ValidationError):
            parse_rate("eight percent")

    def test_rate_avoids_binary_floats(self):
        assert parse_rate(0.1) == Decimal("0.1")


class TestCurrencyFormatting:
    def test_format(self):
        assert format_currency(1234) == "$12.34"
        assert format_currency(123456) == "$1,234.56"
        assert format_currency(5) == "$0.05"

    def test_format_negative(self):
        assert format_currency(-250) == "-$2.50"

    def test_parse(self):
        assert dollars_to_cents("12.34") == 1234
        assert dollars_to_cents("$1,234.56") == 123456
        assert dollars_to_cents("7") == 700

    def test_parse_rounds_sub_cent_half_up(self):
        assert dollars_to_cents("0.005") == 1

    def test_format_and_parse_are_inverse(self):
        for cents in (0, 1, 99, 100, 10800, 123456789, -4200):
            assert dollars_to_cents(format_currency(cents)) == cents

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValidationError):
            dollars_to_cents("twelve dollars")

    def test_format_rejects_float(self):
        with pytest.raises(ValidationError):
            format_currency(12.34)
