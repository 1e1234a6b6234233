"""Shared fixtures for billport-core tests."""

from datetime import date
from decimal import Decimal

import pytest

from billport_core.models import Bill


@pytest.fixture
def today() -> date:
    return date(2025, 8, 1)


@pytest.fixture
def rogers_bill() -> Bill:
    """An unpaid monthly phone bill."""
    return Bill(
        id="bill_rogers",
        user_id="user_1",
        name="Home phone",
        company="Rogers",
        total_amount=Decimal("89.99"),
        due_date=date(2025, 8, 15),
        category="phone",
        is_recurring=True,
        recurring_frequency="monthly",
    )


@pytest.fixture
def hydro_history() -> list[Bill]:
    """Four Toronto Hydro bills, oldest first."""
    amounts = ["100.00", "105.00", "110.00", "130.00"]
    return [
        Bill(
            id=f"hydro_{i}",
            user_id="user_1",
            company="Toronto Hydro",
            total_amount=Decimal(amount),
            paid_amount=Decimal(amount),
            due_date=date(2025, 3 + i, 10),
            category="utilities",
        )
        for i, amount in enumerate(amounts)
    ]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
