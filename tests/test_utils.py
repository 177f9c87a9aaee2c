"""
Tests for parsing helpers, date arithmetic and duration unit labels
"""

import pytest
from datetime import date
from decimal import Decimal

from loan_schedule.data_models import DurationUnit, RepaymentRecord
from loan_schedule.utils import add_months, add_years, decimal_from_str, parse_date, quantize_money, quantize_rate


class TestDates:

    def test_parse_date(self):
        assert parse_date("2024-01-31") == date(2024, 1, 31)
        assert parse_date(" 2024-02-29 ") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", ["2024-02-30", "2024/01/01", "", "yesterday"])
    def test_parse_date_rejects_garbage(self, value):
        with pytest.raises(ValueError, match="Invalid date"):
            parse_date(value)

    def test_add_months_across_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_add_months_clamps_day(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_add_years(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2023, 6, 30), 2) == date(2025, 6, 30)


class TestNumbers:

    def test_decimal_from_str(self):
        assert decimal_from_str("1,234.50") == Decimal("1234.50")
        assert decimal_from_str("10") == Decimal("10")

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity"])
    def test_decimal_from_str_rejects_garbage(self, value):
        with pytest.raises(ValueError, match="Invalid numeric value"):
            decimal_from_str(value)

    def test_quantize_money_half_up(self):
        assert quantize_money(Decimal("2.675")) == Decimal("2.68")
        assert quantize_money(Decimal("-2.675")) == Decimal("-2.68")
        assert quantize_money(Decimal("2.674999")) == Decimal("2.67")

    def test_quantize_rate_to_four_places(self):
        assert quantize_rate(Decimal("3.33335")) == Decimal("3.3334")
        assert quantize_rate(Decimal("10")) == Decimal("10.0000")


class TestDurationUnit:

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("day", DurationUnit.DAY),
            ("days", DurationUnit.DAY),
            ("day(s)", DurationUnit.DAY),
            ("Week(s)", DurationUnit.WEEK),
            ("MONTHS", DurationUnit.MONTH),
            ("year", DurationUnit.YEAR),
        ],
    )
    def test_parse_labels(self, label, expected):
        assert DurationUnit.parse(label) is expected

    def test_unknown_label_defaults_to_month(self):
        assert DurationUnit.parse("fortnight") is DurationUnit.MONTH
        assert DurationUnit.parse("") is DurationUnit.MONTH

    def test_parse_passes_enum_through(self):
        assert DurationUnit.parse(DurationUnit.YEAR) is DurationUnit.YEAR

    def test_label(self):
        assert DurationUnit.MONTH.label == "month(s)"


def test_receipt_number_is_zero_padded():
    record = RepaymentRecord(id=42, amount=Decimal("10"), paid_on=date(2024, 1, 1), balance_after=Decimal("0"))

    assert record.receipt_number == "RCP-00000042"
