"""
Tests for the SQLAlchemy loan store
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.dialects import postgresql

from loan_schedule.data_models import DurationUnit
from loan_schedule.engine import InvalidInput, compute_schedule
from loan_schedule_web.loan_store import LoanNotFound, LoanStore, RepaymentRejected, locked_loan_query


@pytest.fixture
def store(tmp_path):
    return LoanStore(f"sqlite:///{tmp_path / 'loans.sqlite3'}")


@pytest.fixture
def loan(store):
    return store.add_loan(
        loan_number="LN-0001",
        principal_amount=Decimal("1200"),
        interest_rate=Decimal("10"),
        duration=12,
        duration_unit=DurationUnit.MONTH,
        release_date=date(2024, 1, 1),
        borrower_name="Jane Banda",
    )


class TestLoans:

    def test_new_loan_owes_full_repayment(self, loan):
        assert loan["balance"] == Decimal("2640.00")
        assert loan["status"] == "active"
        assert loan["duration_unit"] == "month"

    def test_snapshot(self, store, loan):
        snapshot = store.get_snapshot(loan["id"])

        assert snapshot.principal_amount == Decimal("1200")
        assert snapshot.interest_rate == Decimal("10")
        assert snapshot.duration == 12
        assert snapshot.duration_unit is DurationUnit.MONTH
        assert snapshot.release_date == date(2024, 1, 1)
        assert snapshot.current_balance == Decimal("2640")
        assert snapshot.borrower_name == "Jane Banda"

    def test_list_loans(self, store, loan):
        store.add_loan("LN-0002", Decimal("500"), Decimal("5"), 4, DurationUnit.WEEK, date(2024, 2, 1))

        numbers = [row["loan_number"] for row in store.list_loans()]

        assert numbers == ["LN-0001", "LN-0002"]

    def test_duplicate_loan_number(self, store, loan):
        with pytest.raises(ValueError, match="already exists"):
            store.add_loan("LN-0001", Decimal("1"), Decimal("1"), 1, DurationUnit.DAY, date(2024, 1, 1))

    def test_invalid_terms_not_stored(self, store):
        with pytest.raises(InvalidInput):
            store.add_loan("LN-BAD", Decimal("100"), Decimal("5"), 0, DurationUnit.MONTH, date(2024, 1, 1))

        assert store.list_loans() == []

    def test_terms_rounded_to_stored_precision(self, store):
        created = store.add_loan(
            "LN-0003", Decimal("100000.004"), Decimal("3.33333"), 12, DurationUnit.MONTH, date(2024, 1, 1)
        )

        snapshot = store.get_snapshot(created["id"])
        summary = compute_schedule(snapshot, date(2024, 1, 15)).summary

        assert snapshot.principal_amount == Decimal("100000.00")
        assert snapshot.interest_rate == Decimal("3.3333")
        assert created["balance"] == Decimal("139999.60")
        assert summary.total_paid == 0
        assert summary.payments_made == 0
        assert summary.current_payment_per_installment == summary.original_payment_per_installment

    @pytest.mark.parametrize(
        "principal, rate",
        [(Decimal("1e16"), Decimal("1")), (Decimal("0"), Decimal("1e5")), (Decimal("9e15"), Decimal("100"))],
    )
    def test_terms_beyond_column_range_rejected(self, store, principal, rate):
        with pytest.raises(ValueError, match="too large to store"):
            store.add_loan("LN-BIG", principal, rate, 12, DurationUnit.MONTH, date(2024, 1, 1))

        assert store.list_loans() == []

    def test_missing_loan(self, store):
        with pytest.raises(LoanNotFound):
            store.get_snapshot(404)

    def test_remove_loan(self, store, loan):
        store.record_repayment(loan["id"], Decimal("220"), date(2024, 2, 1))

        store.remove_loan(loan["id"])

        assert store.list_loans() == []
        with pytest.raises(LoanNotFound):
            store.get_repayment(1)


class TestRepayments:

    def test_record_lowers_balance(self, store, loan):
        record = store.record_repayment(
            loan["id"], Decimal("220"), date(2024, 2, 1), method="Cash", reference_number="R-1"
        )

        assert record.balance_after == Decimal("2420")
        assert record.receipt_number == f"RCP-{record.id:08d}"
        assert store.get_snapshot(loan["id"]).current_balance == Decimal("2420")
        assert store.repayment_count(loan["id"]) == 1
        assert store.get_repayment(record.id) == record
        assert store.repayment_loan_id(record.id) == loan["id"]

    def test_repayments_drive_schedule(self, store, loan):
        store.record_repayment(loan["id"], Decimal("1320"), date(2024, 6, 1))

        schedule = compute_schedule(store.get_snapshot(loan["id"]), date(2024, 6, 15))

        assert schedule.summary.payments_made == 6
        assert schedule.next_payment.installment_number == 7

    def test_full_repayment_marks_loan_paid(self, store, loan):
        store.record_repayment(loan["id"], Decimal("2640"), date(2024, 3, 1))

        assert store.get_loan(loan["id"])["status"] == "paid"
        assert store.get_snapshot(loan["id"]).current_balance == Decimal("0")

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_non_positive_amount_rejected(self, store, loan, amount):
        with pytest.raises(RepaymentRejected, match="must be positive"):
            store.record_repayment(loan["id"], Decimal(amount), date(2024, 2, 1))

    def test_overpayment_rejected(self, store, loan):
        with pytest.raises(RepaymentRejected, match="exceeds the outstanding balance"):
            store.record_repayment(loan["id"], Decimal("2640.01"), date(2024, 2, 1))

        assert store.repayment_count(loan["id"]) == 0

    def test_list_repayments_in_order(self, store, loan):
        store.record_repayment(loan["id"], Decimal("220"), date(2024, 2, 1))
        store.record_repayment(loan["id"], Decimal("100"), date(2024, 3, 1))

        records = store.list_repayments(loan["id"])

        assert [r.amount for r in records] == [Decimal("220"), Decimal("100")]
        assert records[-1].balance_after == Decimal("2320")

    def test_repayment_against_missing_loan(self, store):
        with pytest.raises(LoanNotFound):
            store.record_repayment(99, Decimal("10"), date(2024, 1, 1))

    def test_repayment_locks_loan_row(self):
        sql = str(locked_loan_query(1).compile(dialect=postgresql.dialect()))

        assert "FOR UPDATE" in sql
