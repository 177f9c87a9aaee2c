"""Command-line interface for the repayment schedule engine.

This module uses the ``click`` library to implement a multi-command
interface. Users can print a loan's full repayment schedule, its summary or
just the next installment due. Schedules can be exported to JSON, CSV or PDF.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import click

from .data_models import DurationUnit, LoanSnapshot, RepaymentSchedule
from .documents import render_schedule_pdf
from .engine import InvalidInput, compute_schedule
from .formatter import (
    print_next_payment,
    print_schedule,
    print_summary,
    serialize_schedule,
    serialize_summary,
)
from .logging_config import setup_logging
from .utils import decimal_from_str, parse_date

logger = logging.getLogger("loan_schedule.cli")

UNIT_CHOICES = [unit.value for unit in DurationUnit]


def parse_amount(value: str):
    """Parse a numeric string with optional ``k``/``m`` suffixes.

    Accepts plain amounts ("1200") and shorthand with suffixes (e.g. "5k"
    meaning 5 000). Returns a ``Decimal``.
    """
    text = value.strip().lower().replace(",", "")
    factor = 1
    if text.endswith("k"):
        factor = 1_000
        text = text[:-1]
    elif text.endswith("m"):
        factor = 1_000_000
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_date_option(value: Optional[str], name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def build_snapshot_from_options(
    principal: str,
    rate: str,
    duration: int,
    unit: str,
    release_date: str,
    balance: Optional[str] = None,
    loan_number: Optional[str] = None,
) -> LoanSnapshot:
    return LoanSnapshot(
        principal_amount=parse_amount(principal),
        interest_rate=parse_amount(rate),
        duration=duration,
        duration_unit=DurationUnit.parse(unit),
        release_date=parse_date_option(release_date, "--release-date"),
        current_balance=parse_amount(balance) if balance else None,
        loan_number=loan_number,
    )


def run_engine(snapshot: LoanSnapshot, as_of: Optional[str]) -> RepaymentSchedule:
    """Compute the schedule, turning validation failures into CLI errors."""
    as_of_date = parse_date_option(as_of, "--as-of") or date.today()
    try:
        return compute_schedule(snapshot, as_of_date)
    except InvalidInput as exc:
        logger.warning("Rejected loan %s: %s", snapshot.loan_number, exc)
        raise click.ClickException(str(exc))


def export_to_json(path: Path, schedule: RepaymentSchedule) -> None:
    """Export schedule and summary to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(serialize_schedule(schedule), f, indent=2)


def export_to_csv(path: Path, schedule: RepaymentSchedule) -> None:
    """Export schedule to a CSV file."""
    header = [
        "Installment",
        "Payment_Date",
        "Payment_Amount",
        "Principal",
        "Interest",
        "Balance_Before",
        "Balance_After",
        "Paid",
        "Status",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for e in schedule.installments:
            writer.writerow(
                [
                    e.installment_number,
                    e.payment_date.isoformat(),
                    e.payment_amount,
                    e.principal_portion,
                    e.interest_portion,
                    e.balance_before,
                    e.balance_after,
                    e.is_paid,
                    e.status.value,
                ]
            )


def loan_options(func):
    """Attach the options describing a loan snapshot to a command."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Principal amount released"),
        click.option("--rate", "-r", "rate", required=True, help="Flat interest rate in percent per cycle"),
        click.option("--duration", "-n", "duration", required=True, type=int, help="Number of installments"),
        click.option("--unit", "-u", "unit", type=click.Choice(UNIT_CHOICES), default="month", help="Cycle between installments"),
        click.option("--release-date", "-s", "release_date", required=True, help="Loan release date (YYYY-MM-DD)"),
        click.option("--balance", "-b", "balance", help="Current outstanding balance (defaults to the full repayment)"),
        click.option("--loan-number", "loan_number", help="Loan number shown on exports"),
        click.option("--as-of", "as_of", help="Reference date for installment status (YYYY-MM-DD, default today)"),
        click.option("--currency", "currency", envvar="LOAN_SCHEDULE_CURRENCY", help="Currency code for amounts"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--log-level",
    "log_level",
    envvar="LOAN_SCHEDULE_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    help="Logging level",
)
def cli(log_level: str) -> None:
    """Repayment schedules for flat-rate loans."""
    setup_logging(log_level)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json, .csv or .pdf)")
def schedule(
    principal: str,
    rate: str,
    duration: int,
    unit: str,
    release_date: str,
    balance: Optional[str],
    loan_number: Optional[str],
    as_of: Optional[str],
    currency: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print the full repayment schedule."""
    snapshot = build_snapshot_from_options(principal, rate, duration, unit, release_date, balance, loan_number)
    result = run_engine(snapshot, as_of)
    if output:
        path = Path(output)
        suffix = path.suffix.lower()
        if suffix == ".json":
            export_to_json(path, result)
        elif suffix == ".csv":
            export_to_csv(path, result)
        elif suffix == ".pdf":
            path.write_bytes(render_schedule_pdf(snapshot, result, currency))
        else:
            raise click.BadParameter("Unsupported output format; use .json, .csv or .pdf", param_hint="--output")
        click.echo(f"Schedule exported to {path}")
        return
    print_summary(result.summary, currency)
    print_next_payment(result, currency)
    print_schedule(result)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: str,
    duration: int,
    unit: str,
    release_date: str,
    balance: Optional[str],
    loan_number: Optional[str],
    as_of: Optional[str],
    currency: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print only the summary metrics for a loan."""
    snapshot = build_snapshot_from_options(principal, rate, duration, unit, release_date, balance, loan_number)
    result = run_engine(snapshot, as_of)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension", param_hint="--output")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": serialize_summary(result.summary)}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(result.summary, currency)


@cli.command("next-payment")
@loan_options
def next_payment(
    principal: str,
    rate: str,
    duration: int,
    unit: str,
    release_date: str,
    balance: Optional[str],
    loan_number: Optional[str],
    as_of: Optional[str],
    currency: Optional[str],
) -> None:
    """Print the next installment due."""
    snapshot = build_snapshot_from_options(principal, rate, duration, unit, release_date, balance, loan_number)
    print_next_payment(run_engine(snapshot, as_of), currency)


if __name__ == "__main__":
    cli()
