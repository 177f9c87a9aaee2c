"""Output helpers for repayment schedules.

This module turns ``RepaymentSchedule`` objects into display strings: money
formatted with a currency code, table rows for the schedule view, a
JSON-ready dictionary for exports and APIs, and plain text tables for the
terminal.
"""

from __future__ import annotations

import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

import click

from .data_models import Installment, RepaymentSchedule, ScheduleSummary

DEFAULT_CURRENCY = "ZMW"


def default_currency() -> str:
    """Return the configured currency code (``LOAN_SCHEDULE_CURRENCY``)."""
    return (os.environ.get("LOAN_SCHEDULE_CURRENCY") or DEFAULT_CURRENCY).upper()


def format_number(amount: Decimal) -> str:
    return f"{Decimal(amount):,.2f}"


def format_money(amount: Decimal, currency: Optional[str] = None) -> str:
    """Format ``amount`` as ``"<CODE> 1,234.56"``."""
    code = currency or default_currency()
    return f"{code} {format_number(amount)}"


def format_rate(rate: Decimal) -> str:
    """Format a percentage without trailing zeros, e.g. ``10.0000`` as ``10%``."""
    return f"{Decimal(rate).normalize():f}%"


def format_display_date(value) -> str:
    return value.strftime("%b %d, %Y")


def format_for_display(schedule: RepaymentSchedule) -> List[Dict[str, Any]]:
    """Return one row per installment, keyed by column heading."""
    rows = []
    for entry in schedule.installments:
        rows.append(
            {
                "Installment": entry.installment_number,
                "Payment Date": format_display_date(entry.payment_date),
                "Payment Amount": format_number(entry.payment_amount),
                "Principal": format_number(entry.principal_portion),
                "Interest": format_number(entry.interest_portion),
                "Balance After Payment": format_number(entry.balance_after),
                "Status": entry.status.value,
            }
        )
    return rows


def serialize_installment(entry: Installment) -> Dict[str, Any]:
    return {
        "installment_number": entry.installment_number,
        "payment_date": entry.payment_date.isoformat(),
        "payment_amount": str(entry.payment_amount),
        "principal_portion": str(entry.principal_portion),
        "interest_portion": str(entry.interest_portion),
        "balance_before": str(entry.balance_before),
        "balance_after": str(entry.balance_after),
        "is_paid": entry.is_paid,
        "status": entry.status.value,
    }


def serialize_summary(summary: ScheduleSummary) -> Dict[str, Any]:
    return {
        "principal_amount": str(summary.principal_amount),
        "interest_rate": str(summary.interest_rate),
        "duration": summary.duration,
        "duration_unit": summary.duration_unit.value,
        "release_date": summary.release_date.isoformat(),
        "total_interest": str(summary.total_interest),
        "original_total_repayment": str(summary.original_total_repayment),
        "current_balance": str(summary.current_balance),
        "total_paid": str(summary.total_paid),
        "original_payment_per_installment": str(summary.original_payment_per_installment),
        "current_payment_per_installment": str(summary.current_payment_per_installment),
        "payments_made": summary.payments_made,
        "remaining_payments": summary.remaining_payments,
    }


def serialize_schedule(schedule: RepaymentSchedule) -> Dict[str, Any]:
    """Convert a schedule into JSON-serialisable data.

    Amounts are emitted as strings so that exported figures keep exactly two
    decimals.
    """
    return {
        "as_of": schedule.as_of.isoformat() if schedule.as_of else None,
        "summary": serialize_summary(schedule.summary),
        "installments": [serialize_installment(e) for e in schedule.installments],
        "next_payment": serialize_installment(schedule.next_payment) if schedule.next_payment else None,
    }


def print_summary(summary: ScheduleSummary, currency: Optional[str] = None) -> None:
    """Print a summary of loan metrics in a human-readable format."""
    click.echo("Summary")
    click.echo("-" * 72)
    click.echo(f"Principal amount    : {format_money(summary.principal_amount, currency)}")
    click.echo(f"Interest rate       : {format_rate(summary.interest_rate)} per {summary.duration_unit.value}")
    click.echo(f"Duration            : {summary.duration} {summary.duration_unit.label}")
    click.echo(f"Release date        : {summary.release_date.isoformat()}")
    click.echo(f"Total interest      : {format_money(summary.total_interest, currency)}")
    click.echo(f"Original total      : {format_money(summary.original_total_repayment, currency)}")
    click.echo(f"Total paid          : {format_money(summary.total_paid, currency)}")
    click.echo(f"Current balance     : {format_money(summary.current_balance, currency)}")
    click.echo(f"Original instalment : {format_money(summary.original_payment_per_installment, currency)}")
    # The revised amount only differs when repayments strayed from the plan.
    if summary.current_payment_per_installment != summary.original_payment_per_installment:
        click.echo(f"Revised instalment  : {format_money(summary.current_payment_per_installment, currency)}")
    click.echo(f"Payments made       : {summary.payments_made} / {summary.duration}")
    click.echo("-" * 72)


def print_next_payment(schedule: RepaymentSchedule, currency: Optional[str] = None) -> None:
    entry = schedule.next_payment
    if entry is None:
        click.echo("All installments paid")
        return
    click.echo(
        f"Next payment due {entry.payment_date.strftime('%B %d, %Y')} | "
        f"Amount: {format_money(entry.payment_amount, currency)} | "
        f"Balance after: {format_money(entry.balance_after, currency)} | "
        f"Status: {entry.status.value}"
    )


def print_schedule(schedule: RepaymentSchedule) -> None:
    """Print the installment table, tab separated."""
    rows = format_for_display(schedule)
    headers = [
        "Installment",
        "Payment Date",
        "Payment Amount",
        "Principal",
        "Interest",
        "Balance After Payment",
        "Status",
    ]
    click.echo("\t".join(headers))
    for row in rows:
        click.echo("\t".join(str(row[h]) for h in headers))
