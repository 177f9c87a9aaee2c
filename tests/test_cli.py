"""
Tests for the loan-schedule command-line interface
"""

import csv
import json

import pytest
from click.testing import CliRunner

from loan_schedule.main import cli

LOAN_ARGS = [
    "--principal", "1200",
    "--rate", "10",
    "--duration", "12",
    "--release-date", "2024-01-01",
    "--as-of", "2024-01-15",
    "--currency", "USD",
]


@pytest.fixture
def runner():
    return CliRunner()


class TestScheduleCommand:

    def test_prints_summary_and_table(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS])

        assert result.exit_code == 0, result.output
        assert "Original total      : USD 2,640.00" in result.output
        assert "Payments made       : 0 / 12" in result.output
        assert "Next payment due February 01, 2024" in result.output
        assert "Feb 01, 2024\t220.00\t100.00\t120.00\t2,420.00\tUpcoming" in result.output

    def test_revised_installment_shown(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--balance", "1000"])

        assert result.exit_code == 0, result.output
        assert "Revised instalment  : USD 200.00" in result.output
        assert "Payments made       : 7 / 12" in result.output

    def test_json_export(self, runner, tmp_path):
        path = tmp_path / "schedule.json"

        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--balance", "1320", "--output", str(path)])

        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["payments_made"] == 6
        assert data["next_payment"]["installment_number"] == 7

    def test_csv_export(self, runner, tmp_path):
        path = tmp_path / "schedule.csv"

        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--output", str(path)])

        assert result.exit_code == 0, result.output
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0][0] == "Installment"
        assert rows[1] == ["1", "2024-02-01", "220.00", "100.00", "120.00", "2640.00", "2420.00", "False", "Upcoming"]
        assert len(rows) == 13

    def test_pdf_export(self, runner, tmp_path):
        path = tmp_path / "schedule.pdf"

        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--loan-number", "LN-9", "--output", str(path)])

        assert result.exit_code == 0, result.output
        assert path.read_bytes().startswith(b"%PDF")

    def test_unsupported_output(self, runner, tmp_path):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--output", str(tmp_path / "schedule.txt")])

        assert result.exit_code == 2
        assert "Unsupported output format" in result.output

    def test_zero_duration_rejected(self, runner):
        args = [a if a != "12" else "0" for a in LOAN_ARGS]

        result = runner.invoke(cli, ["schedule", *args])

        assert result.exit_code == 1
        assert "duration must be positive" in result.output

    def test_negative_balance_rejected(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--balance=-5"])

        assert result.exit_code == 1
        assert "current_balance must not be negative" in result.output

    def test_bad_release_date(self, runner):
        args = [a if a != "2024-01-01" else "01/01/2024" for a in LOAN_ARGS]

        result = runner.invoke(cli, ["schedule", *args])

        assert result.exit_code == 2
        assert "Invalid date string" in result.output

    def test_weekly_unit(self, runner):
        result = runner.invoke(cli, ["schedule", *LOAN_ARGS, "--unit", "week"])

        assert result.exit_code == 0, result.output
        assert "Jan 08, 2024" in result.output


class TestSummaryCommand:

    def test_prints_summary(self, runner):
        result = runner.invoke(cli, ["summary", *LOAN_ARGS, "--principal", "5k"])

        assert result.exit_code == 0, result.output
        assert "Principal amount    : USD 5,000.00" in result.output
        assert "Installment\t" not in result.output

    def test_json_export(self, runner, tmp_path):
        path = tmp_path / "summary.json"

        result = runner.invoke(cli, ["summary", *LOAN_ARGS, "--output", str(path)])

        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["total_interest"] == "1440.00"
        assert data["summary"]["original_payment_per_installment"] == "220.00"

    def test_json_export_requires_json_extension(self, runner, tmp_path):
        result = runner.invoke(cli, ["summary", *LOAN_ARGS, "--output", str(tmp_path / "summary.csv")])

        assert result.exit_code == 2


class TestNextPaymentCommand:

    def test_next_payment(self, runner):
        result = runner.invoke(cli, ["next-payment", *LOAN_ARGS, "--balance", "1320"])

        assert result.exit_code == 0, result.output
        assert "Next payment due August 01, 2024" in result.output
        assert "Amount: USD 220.00" in result.output
        assert "Status: Upcoming" in result.output

    def test_all_paid(self, runner):
        result = runner.invoke(cli, ["next-payment", *LOAN_ARGS, "--balance", "0"])

        assert result.exit_code == 0, result.output
        assert "All installments paid" in result.output
