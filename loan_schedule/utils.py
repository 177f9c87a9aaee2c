"""Utility functions for the repayment schedule engine.

This module provides helpers for parsing user input into Python data types,
for rounding money and for date arithmetic, including adding months and years
with the day of month clamped to the end of shorter months.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
import calendar

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
RATE_STEP = Decimal("0.0001")


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    Raises
    ------
    ValueError
        If the string is not a valid calendar date.
    """
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(dt: date, years: int) -> date:
    """Return a new date a number of years after ``dt`` (Feb 29 becomes Feb 28)."""
    return add_months(dt, years * 12)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round ``value`` to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_rate(value: Decimal) -> Decimal:
    """Round an interest rate to four decimals, half away from zero."""
    return value.quantize(RATE_STEP, rounding=ROUND_HALF_UP)
