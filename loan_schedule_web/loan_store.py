"""Persistence layer for loans and their repayments.

The store keeps loan records and posted repayments in a SQL database and
hands the schedule engine immutable ``LoanSnapshot`` values. It defaults to
SQLite for local development, but accepts any SQLAlchemy-compatible URL (e.g.
PostgreSQL/MySQL).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from loan_schedule.data_models import DurationUnit, LoanSnapshot, RepaymentRecord
from loan_schedule.engine import compute_schedule
from loan_schedule.utils import quantize_money, quantize_rate

logger = logging.getLogger("loan_schedule.store")

# Largest values the Numeric(18, 2) and Numeric(9, 4) columns can hold.
AMOUNT_LIMIT = Decimal("1e16")
RATE_LIMIT = Decimal("1e5")

Base = declarative_base()


class LoanNotFound(KeyError):
    """Raised when a loan or repayment id does not exist."""


class RepaymentRejected(ValueError):
    """Raised when a repayment cannot be posted against a loan."""


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_number = Column(String(64), unique=True, nullable=False)
    borrower_name = Column(String(255), nullable=True)
    principal_amount = Column(Numeric(18, 2), nullable=False)
    interest_rate = Column(Numeric(9, 4), nullable=False)
    duration = Column(Integer, nullable=False)
    duration_unit = Column(String(16), nullable=False, default=DurationUnit.MONTH.value)
    release_date = Column(Date, nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)
    status = Column(String(32), nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    repayments = relationship(
        "RepaymentModel",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="RepaymentModel.id",
    )


class RepaymentModel(Base):
    __tablename__ = "repayments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), index=True, nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    method = Column(String(64), nullable=True)
    reference_number = Column(String(128), nullable=True)
    balance_after = Column(Numeric(18, 2), nullable=False)
    paid_on = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    loan = relationship("LoanModel", back_populates="repayments")


def locked_loan_query(loan_id: int):
    """Select a loan row with a row lock held until the session commits.

    Concurrent repayments on the same loan are serialised by the lock. SQLite
    ignores ``FOR UPDATE`` and relies on its database-level write lock.
    """
    return select(LoanModel).where(LoanModel.id == loan_id).with_for_update()


class LoanStore:
    """Database-backed loan store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def add_loan(
        self,
        loan_number: str,
        principal_amount: Decimal,
        interest_rate: Decimal,
        duration: int,
        duration_unit: DurationUnit,
        release_date: date,
        borrower_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a loan whose balance starts at the original total repayment.

        The terms are run through the schedule engine first, so invalid terms
        raise ``InvalidInput`` before anything is written. Principal and rate
        are then rounded to the precision of their columns and the opening
        balance is computed from the rounded terms, so a reloaded loan owes
        exactly its original total.
        """
        if not loan_number:
            raise ValueError("Loan number is required")
        unit = DurationUnit.parse(duration_unit)
        snapshot = LoanSnapshot(
            principal_amount=principal_amount,
            interest_rate=interest_rate,
            duration=duration,
            duration_unit=unit,
            release_date=release_date,
            loan_number=loan_number,
        )
        summary = compute_schedule(snapshot, release_date).summary
        if summary.principal_amount >= AMOUNT_LIMIT or summary.interest_rate >= RATE_LIMIT:
            raise ValueError("Principal amount or interest rate is too large to store")
        snapshot = replace(
            snapshot,
            principal_amount=quantize_money(summary.principal_amount),
            interest_rate=quantize_rate(summary.interest_rate),
        )
        summary = compute_schedule(snapshot, release_date).summary
        if summary.original_total_repayment >= AMOUNT_LIMIT:
            raise ValueError("Total repayment is too large to store")
        with self._session_factory() as session:
            existing = session.execute(
                select(LoanModel.id).where(LoanModel.loan_number == loan_number)
            ).first()
            if existing:
                raise ValueError(f"Loan number {loan_number} already exists")
            row = LoanModel(
                loan_number=loan_number,
                borrower_name=borrower_name,
                principal_amount=summary.principal_amount,
                interest_rate=summary.interest_rate,
                duration=duration,
                duration_unit=unit.value,
                release_date=release_date,
                balance=summary.original_total_repayment,
                status="active",
                created_at=datetime.utcnow(),
            )
            session.add(row)
            session.commit()
            logger.info("Created loan %s", loan_number, extra={"loan_number": loan_number, "action": "create"})
            return self._loan_to_dict(row)

    def list_loans(self) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.execute(select(LoanModel).order_by(LoanModel.created_at.asc(), LoanModel.id.asc())).scalars()
            return [self._loan_to_dict(row) for row in rows]

    def get_loan(self, loan_id: int) -> Dict[str, Any]:
        with self._session_factory() as session:
            return self._loan_to_dict(self._get_row(session, loan_id))

    def get_snapshot(self, loan_id: int) -> LoanSnapshot:
        with self._session_factory() as session:
            return self._to_snapshot(self._get_row(session, loan_id))

    def remove_loan(self, loan_id: int) -> None:
        with self._session_factory() as session:
            row = self._get_row(session, loan_id)
            loan_number = row.loan_number
            session.delete(row)
            session.commit()
        logger.info("Removed loan %s", loan_number, extra={"loan_number": loan_number, "action": "delete"})

    def record_repayment(
        self,
        loan_id: int,
        amount: Decimal,
        paid_on: date,
        method: Optional[str] = None,
        reference_number: Optional[str] = None,
    ) -> RepaymentRecord:
        """Post a repayment and lower the loan balance by ``amount``.

        A loan whose balance reaches zero is marked ``paid``.
        """
        amount = quantize_money(Decimal(amount))
        if amount <= 0:
            raise RepaymentRejected("Repayment amount must be positive")
        with self._session_factory() as session:
            loan = session.execute(locked_loan_query(loan_id)).scalar_one_or_none()
            if loan is None:
                raise LoanNotFound(f"Loan {loan_id} not found")
            if amount > loan.balance:
                raise RepaymentRejected(
                    f"Repayment of {amount} exceeds the outstanding balance of {loan.balance}"
                )
            loan.balance = loan.balance - amount
            if loan.balance == 0:
                loan.status = "paid"
            row = RepaymentModel(
                loan_id=loan.id,
                amount=amount,
                method=method or None,
                reference_number=reference_number or None,
                balance_after=loan.balance,
                paid_on=paid_on,
            )
            session.add(row)
            session.commit()
            logger.info(
                "Recorded repayment of %s on loan %s",
                amount,
                loan.loan_number,
                extra={"loan_number": loan.loan_number, "action": "repayment"},
            )
            return self._to_record(row)

    def list_repayments(self, loan_id: int) -> List[RepaymentRecord]:
        with self._session_factory() as session:
            self._get_row(session, loan_id)
            rows = session.execute(
                select(RepaymentModel)
                .where(RepaymentModel.loan_id == loan_id)
                .order_by(RepaymentModel.id.asc())
            ).scalars()
            return [self._to_record(row) for row in rows]

    def get_repayment(self, repayment_id: int) -> RepaymentRecord:
        with self._session_factory() as session:
            row = session.get(RepaymentModel, repayment_id)
            if row is None:
                raise LoanNotFound(f"Repayment {repayment_id} not found")
            return self._to_record(row)

    def repayment_loan_id(self, repayment_id: int) -> int:
        with self._session_factory() as session:
            row = session.get(RepaymentModel, repayment_id)
            if row is None:
                raise LoanNotFound(f"Repayment {repayment_id} not found")
            return row.loan_id

    def repayment_count(self, loan_id: int) -> int:
        with self._session_factory() as session:
            return session.execute(
                select(func.count(RepaymentModel.id)).where(RepaymentModel.loan_id == loan_id)
            ).scalar_one()

    @staticmethod
    def _get_row(session, loan_id: int) -> LoanModel:
        row = session.get(LoanModel, loan_id)
        if row is None:
            raise LoanNotFound(f"Loan {loan_id} not found")
        return row

    @staticmethod
    def _to_snapshot(row: LoanModel) -> LoanSnapshot:
        return LoanSnapshot(
            principal_amount=Decimal(row.principal_amount),
            interest_rate=Decimal(row.interest_rate),
            duration=row.duration,
            duration_unit=DurationUnit.parse(row.duration_unit),
            release_date=row.release_date,
            current_balance=Decimal(row.balance),
            loan_number=row.loan_number,
            status=row.status,
            borrower_name=row.borrower_name,
        )

    @staticmethod
    def _to_record(row: RepaymentModel) -> RepaymentRecord:
        return RepaymentRecord(
            id=row.id,
            amount=Decimal(row.amount),
            paid_on=row.paid_on,
            balance_after=Decimal(row.balance_after),
            method=row.method,
            reference_number=row.reference_number,
        )

    @staticmethod
    def _loan_to_dict(row: LoanModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "loan_number": row.loan_number,
            "borrower_name": row.borrower_name,
            "principal_amount": Decimal(row.principal_amount),
            "interest_rate": Decimal(row.interest_rate),
            "duration": row.duration,
            "duration_unit": row.duration_unit,
            "release_date": row.release_date,
            "balance": Decimal(row.balance),
            "status": row.status,
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: str | None) -> LoanStore:
    return LoanStore(url or "sqlite:///loan_schedule.sqlite3")
