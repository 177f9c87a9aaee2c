"""Data models for the repayment schedule engine.

This module defines the dataclasses exchanged with the engine: the loan
snapshot read from the loan store, the derived summary, individual
installments and the complete schedule. Enums cover the installment cadence
and the status labels shown to users.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

logger = logging.getLogger("loan_schedule.data_models")


class DurationUnit(Enum):
    """Cadence between two consecutive installments."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: str) -> "DurationUnit":
        """Parse ``day``, ``days`` or ``day(s)`` style labels.

        Unknown labels fall back to ``MONTH``, matching how loan records with
        an unrecognised cycle have always been scheduled.
        """
        if isinstance(value, cls):
            return value
        text = (value or "").strip().lower()
        if text.endswith("(s)"):
            text = text[:-3]
        elif text.endswith("s"):
            text = text[:-1]
        try:
            return cls(text)
        except ValueError:
            logger.warning("Unknown duration unit %r; defaulting to months", value)
            return cls.MONTH

    @property
    def label(self) -> str:
        return f"{self.value}(s)"


class InstallmentStatus(Enum):
    PAID = "Paid"
    OVERDUE = "Overdue"
    DUE_TODAY = "Due Today"
    UPCOMING = "Upcoming"


@dataclass(frozen=True)
class LoanSnapshot:
    """A read-only view of a loan as supplied by the loan store.

    Attributes
    ----------
    principal_amount: Decimal
        Amount released to the borrower.
    interest_rate: Decimal
        Flat interest rate in percent per cycle.
    duration: int
        Number of installments.
    duration_unit: DurationUnit
        Cadence between installments.
    release_date: date
        Date the loan was released. The first installment falls one cycle
        after this date.
    current_balance: Optional[Decimal]
        Amount still owed. ``None`` means no repayment has been recorded and
        the balance equals the original total repayment.
    """

    principal_amount: Decimal
    interest_rate: Decimal
    duration: int
    duration_unit: DurationUnit
    release_date: date
    current_balance: Optional[Decimal] = None
    loan_number: Optional[str] = None
    status: str = "active"
    borrower_name: Optional[str] = None


@dataclass
class ScheduleSummary:
    """Aggregate figures for a schedule, recomputed on every call."""

    principal_amount: Decimal
    interest_rate: Decimal
    duration: int
    duration_unit: DurationUnit
    release_date: date
    total_interest: Decimal
    original_total_repayment: Decimal
    current_balance: Decimal
    total_paid: Decimal
    original_payment_per_installment: Decimal
    current_payment_per_installment: Decimal
    payments_made: int
    remaining_payments: int


@dataclass
class Installment:
    """One scheduled repayment.

    ``balance_before`` and ``balance_after`` follow the original schedule
    (they fall by the original installment amount every period), even for
    installments whose ``payment_amount`` has been revised.
    """

    installment_number: int
    payment_date: date
    payment_amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    balance_before: Decimal
    balance_after: Decimal
    is_paid: bool
    status: InstallmentStatus


@dataclass
class RepaymentSchedule:
    summary: ScheduleSummary
    installments: List[Installment] = field(default_factory=list)
    next_payment: Optional[Installment] = None
    as_of: Optional[date] = None


@dataclass(frozen=True)
class RepaymentRecord:
    """A repayment posted against a loan, as shown on a receipt."""

    id: int
    amount: Decimal
    paid_on: date
    balance_after: Decimal
    method: Optional[str] = None
    reference_number: Optional[str] = None

    @property
    def receipt_number(self) -> str:
        return f"RCP-{self.id:08d}"
