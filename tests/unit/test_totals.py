"""Unit tests for the monetary engine (invoicing_engines/totals.py)."""

from decimal import Decimal

import pytest

from invoicing_engines.totals import (
    clamp_rate,
    compute_line,
    compute_totals,
    round_money,
    sanitize_amount,
    to_decimal,
)


class TestRoundMoney:
    def test_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("2.675")) == Decimal("2.68")

    def test_two_places(self):
        assert str(round_money(Decimal("3"))) == "3.00"


class TestToDecimal:
    @pytest.mark.parametrize("value", [None, True, False, "", "  ", "abc", "NaN", "Infinity"])
    def test_unreadable_values(self, value):
        assert to_decimal(value) is None

    def test_strings_and_numbers(self):
        assert to_decimal(" 12.5 ") == Decimal("12.5")
        assert to_decimal(3) == Decimal("3")
        assert to_decimal(Decimal("1.10")) == Decimal("1.10")


class TestSanitizeAmount:
    def test_negative_clamped_to_zero(self):
        assert sanitize_amount("-5") == Decimal("0.00")

    def test_unparsable_is_zero(self):
        assert sanitize_amount("twelve") == Decimal("0.00")

    def test_rounds(self):
        assert sanitize_amount("10.555") == Decimal("10.56")


class TestClampRate:
    def test_within_range(self):
        assert clamp_rate("0.1") == Decimal("0.1")

    def test_above_one(self):
        assert clamp_rate("1.5") == Decimal("1")

    def test_negative_and_unreadable(self):
        assert clamp_rate("-0.2") == Decimal("0")
        assert clamp_rate(None) == Decimal("0")


class TestComputeLine:
    def test_without_gst(self):
        totals = compute_line(2, "150", False, "0.1")
        assert totals.subtotal == Decimal("300.00")
        assert totals.gst == Decimal("0.00")
        assert totals.total == Decimal("300.00")

    def test_with_gst(self):
        totals = compute_line(2, "150", True, "0.1")
        assert totals.subtotal == Decimal("300.00")
        assert totals.gst == Decimal("30.00")
        assert totals.total == Decimal("330.00")

    def test_subtotal_rounded_before_gst(self):
        totals = compute_line("3", "0.335", True, "0.1")
        # 3 * 0.34 (price rounded first) = 1.02; gst 0.102 -> 0.10
        assert totals.subtotal == Decimal("1.02")
        assert totals.gst == Decimal("0.10")
        assert totals.total == Decimal("1.12")

    def test_negative_inputs_clamped(self):
        totals = compute_line(-1, "100", True, "0.1")
        assert totals.total == Decimal("0.00")


class TestComputeTotals:
    def test_mixed_lines(self):
        totals = compute_totals(
            [
                {"quantity": 2, "unitPrice": "150", "applyGst": True},
                {"quantity": 1, "unitPrice": "49.99", "applyGst": False},
            ],
            Decimal("0.1"),
        )
        assert totals.subtotal == Decimal("349.99")
        assert totals.gst_total == Decimal("30.00")
        assert totals.total == Decimal("379.99")

    def test_snake_case_keys(self):
        totals = compute_totals(
            [{"quantity": 1, "unit_price": "10", "apply_gst": True}],
            Decimal("0.1"),
        )
        assert totals.total == Decimal("11.00")

    def test_footer_is_sum_of_rounded_lines(self):
        items = [{"quantity": 1, "unitPrice": "0.05", "applyGst": True}] * 3
        totals = compute_totals(items, Decimal("0.1"))
        # each line gst 0.005 -> 0.01, so the footer shows 0.03 not 0.02
        assert totals.gst_total == Decimal("0.03")
        assert totals.total == totals.subtotal + totals.gst_total

    def test_empty(self):
        totals = compute_totals([], Decimal("0.1"))
        assert totals.total == Decimal("0.00")
