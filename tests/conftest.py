from datetime import date
from decimal import Decimal

import pytest

from loan_schedule.data_models import DurationUnit, LoanSnapshot


@pytest.fixture
def monthly_loan():
    """1 200 at 10 % per month over 12 months, released on 2024-01-01."""
    return LoanSnapshot(
        principal_amount=Decimal("1200"),
        interest_rate=Decimal("10"),
        duration=12,
        duration_unit=DurationUnit.MONTH,
        release_date=date(2024, 1, 1),
        loan_number="LN-0001",
        borrower_name="Jane Banda",
    )
