"""Core calculation engine for loan repayment schedules.

This module rebuilds the installment schedule of a flat-rate loan from a
``LoanSnapshot``. Interest is computed once over the full term and spread
evenly across installments. The number of installments already paid is
inferred from how far the current balance has fallen below the original total
repayment, and the amount due for the remaining installments is recomputed so
that the current balance divides evenly over them.

The engine performs no I/O and never reads the system clock: the "as-of" date
used to classify installments as overdue, due today or upcoming is an
explicit argument.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Iterable, List, Optional

from .data_models import (
    DurationUnit,
    Installment,
    InstallmentStatus,
    LoanSnapshot,
    RepaymentSchedule,
    ScheduleSummary,
)
from .utils import add_months, add_years, quantize_money

logger = logging.getLogger("loan_schedule.engine")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class InvalidInput(ValueError):
    """Raised when a loan snapshot cannot produce a schedule."""


def _as_decimal(name: str, value: object) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidInput(f"{name} must be numeric; got {value!r}") from exc
    if not result.is_finite():
        raise InvalidInput(f"{name} must be a finite number; got {value!r}")
    if result < 0:
        raise InvalidInput(f"{name} must not be negative; got {value}")
    return result


def _validate_duration(duration: object) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidInput(f"duration must be an integer; got {duration!r}")
    if duration <= 0:
        raise InvalidInput(f"duration must be positive; got {duration}")
    return duration


def _check_last_payment_date(release_date: date, duration: int, unit: DurationUnit) -> None:
    # Due dates grow with the installment number, so the last one bounds them all.
    try:
        payment_date_for(release_date, duration, unit)
    except (OverflowError, ValueError) as exc:
        raise InvalidInput(
            f"duration of {duration} {unit.label} runs past the last representable date"
        ) from exc


def payment_date_for(release_date: date, installment_number: int, unit: DurationUnit) -> date:
    """Return the due date of ``installment_number``.

    The date is computed directly from the release date rather than from the
    previous installment, so a loan released on the 31st keeps falling on the
    31st in months that have one.
    """
    if unit is DurationUnit.DAY:
        return release_date + timedelta(days=installment_number)
    if unit is DurationUnit.WEEK:
        return release_date + timedelta(weeks=installment_number)
    if unit is DurationUnit.YEAR:
        return add_years(release_date, installment_number)
    return add_months(release_date, installment_number)


def classify_status(payment_date: date, is_paid: bool, as_of: date) -> InstallmentStatus:
    if is_paid:
        return InstallmentStatus.PAID
    if payment_date < as_of:
        return InstallmentStatus.OVERDUE
    if payment_date == as_of:
        return InstallmentStatus.DUE_TODAY
    return InstallmentStatus.UPCOMING


def find_next_payment(installments: Iterable[Installment]) -> Optional[Installment]:
    """Return the first unpaid installment, or ``None`` when all are paid."""
    for installment in installments:
        if not installment.is_paid:
            return installment
    return None


def infer_payments_made(total_paid: Decimal, original_total_repayment: Decimal, duration: int) -> int:
    """Approximate how many whole installments the balance reduction covers.

    This is ``floor(total_paid / original_payment_per_installment)`` written
    as ``floor(total_paid * duration / original_total_repayment)`` so that a
    zero balance always yields exactly ``duration``. It is an estimate: the
    engine has no access to the actual repayment records.
    """
    if total_paid <= 0 or original_total_repayment <= 0:
        return 0
    made = int((total_paid * duration) // original_total_repayment)
    return max(0, min(duration, made))


def compute_schedule(
    loan: LoanSnapshot,
    as_of: date,
    payments_made: Optional[int] = None,
) -> RepaymentSchedule:
    """Compute the repayment schedule, summary and next payment for a loan.

    Parameters
    ----------
    loan: LoanSnapshot
        The loan to schedule. ``current_balance`` defaults to the original
        total repayment when missing.
    as_of: date
        Reference "today" used to classify unpaid installments.
    payments_made: Optional[int]
        Count of repayments recorded in a payment ledger. When given it
        replaces the balance-based inference (values above ``duration`` are
        clamped).

    Returns
    -------
    RepaymentSchedule
        Currency fields are rounded to cents, half away from zero.

    Raises
    ------
    InvalidInput
        If the duration is not a positive integer, any amount is negative, or
        the loan is too large or too long to represent.
    """
    duration = _validate_duration(loan.duration)
    principal = _as_decimal("principal_amount", loan.principal_amount)
    rate = _as_decimal("interest_rate", loan.interest_rate)
    unit = DurationUnit.parse(loan.duration_unit)
    if payments_made is not None and (isinstance(payments_made, bool) or payments_made < 0):
        raise InvalidInput(f"payments_made must be a non-negative integer; got {payments_made!r}")
    if loan.current_balance is None:
        balance = None
    else:
        balance = _as_decimal("current_balance", loan.current_balance)
    _check_last_payment_date(loan.release_date, duration, unit)

    try:
        total_interest = principal * (rate / HUNDRED) * duration
        original_total_repayment = principal + total_interest
        current_balance = original_total_repayment if balance is None else balance
        # Every other amount is bounded by these two, so they must fit in cents.
        quantize_money(original_total_repayment)
        quantize_money(current_balance)
    except DecimalException as exc:
        raise InvalidInput(
            f"loan amounts are too large to schedule in cents; principal {principal}, "
            f"interest rate {rate}, duration {duration}"
        ) from exc

    total_paid = original_total_repayment - current_balance
    original_payment = original_total_repayment / duration

    if payments_made is None:
        made = infer_payments_made(total_paid, original_total_repayment, duration)
    else:
        made = min(int(payments_made), duration)
    remaining_payments = max(0, duration - made)
    current_payment = current_balance / remaining_payments if remaining_payments > 0 else ZERO

    interest_portion = total_interest / duration
    installments: List[Installment] = []
    remaining_balance = original_total_repayment
    for number in range(1, duration + 1):
        payment_date = payment_date_for(loan.release_date, number, unit)
        is_paid = number <= made
        payment_amount = original_payment if is_paid else current_payment
        balance_after = remaining_balance - original_payment
        installments.append(
            Installment(
                installment_number=number,
                payment_date=payment_date,
                payment_amount=quantize_money(payment_amount),
                principal_portion=quantize_money(payment_amount - interest_portion),
                interest_portion=quantize_money(interest_portion),
                balance_before=quantize_money(max(ZERO, remaining_balance)),
                balance_after=quantize_money(max(ZERO, balance_after)),
                is_paid=is_paid,
                status=classify_status(payment_date, is_paid, as_of),
            )
        )
        # The carried balance is not clamped; only the displayed values are.
        remaining_balance = balance_after

    summary = ScheduleSummary(
        principal_amount=principal,
        interest_rate=rate,
        duration=duration,
        duration_unit=unit,
        release_date=loan.release_date,
        total_interest=quantize_money(total_interest),
        original_total_repayment=quantize_money(original_total_repayment),
        current_balance=quantize_money(current_balance),
        total_paid=quantize_money(total_paid),
        original_payment_per_installment=quantize_money(original_payment),
        current_payment_per_installment=quantize_money(current_payment),
        payments_made=made,
        remaining_payments=remaining_payments,
    )
    logger.debug(
        "Computed schedule for loan %s: %d of %d installments paid",
        loan.loan_number or "<unnumbered>",
        made,
        duration,
    )
    return RepaymentSchedule(
        summary=summary,
        installments=installments,
        next_payment=find_next_payment(installments),
        as_of=as_of,
    )
