"""Due-status classification for bills.

Every view that labels a bill overdue, due soon or upcoming goes through
classify_due_status. Dates are compared as calendar days, so a bill due
today is due soon at any hour of the day.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from billport_core.exceptions import ValidationError
from billport_core.models.bill import Bill
from billport_core.parsing import parse_date

DEFAULT_DUE_SOON_DAYS = 7
"""Days before the due date during which an unpaid bill is due soon."""

DateLike = Union[date, datetime, str]


class DueStatus(str, Enum):
    """Attention state of a bill relative to today."""

    OVERDUE = "overdue"
    DUE_SOON = "due-soon"
    UPCOMING = "upcoming"
    PAID = "paid"


def _as_date(value: DateLike, field: str = "due_date") -> date:
    """Truncate datetimes and parse date strings; anything else is rejected."""
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Not a recognizable date: {value!r}",
            field=field,
            value=str(value),
        )
    return parsed


def days_until_due(due_date: DateLike, now: Optional[DateLike] = None) -> int:
    """Whole calendar days from ``now`` to ``due_date``; negative when past."""
    today = _as_date(now, "now") if now is not None else date.today()
    return (_as_date(due_date) - today).days


def classify_due_status(
    due_date: Optional[DateLike],
    paid: bool = False,
    *,
    now: Optional[DateLike] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> DueStatus:
    """Classify a bill by how close its due date is.

    Args:
        due_date: The bill's due date. A datetime is truncated to its date
            and a string is parsed like any stored date.
        paid: Whether the bill is fully paid. Paid bills are always PAID.
        now: Reference time; defaults to today.
        due_soon_days: Inclusive window, in days, for DUE_SOON.

    Returns:
        OVERDUE when the due date has passed, DUE_SOON when it falls within
        ``due_soon_days`` (today included), UPCOMING otherwise.

    Raises:
        ValidationError: If ``due_date`` is missing or unparseable, or the
            window is negative.
    """
    if paid:
        return DueStatus.PAID
    if due_date is None:
        raise ValidationError("due_date is required", field="due_date")
    if due_soon_days < 0:
        raise ValidationError(
            "due_soon_days cannot be negative",
            field="due_soon_days",
            value=due_soon_days,
            constraint="due_soon_days >= 0",
        )

    diff_days = days_until_due(due_date, now)
    if diff_days < 0:
        return DueStatus.OVERDUE
    if diff_days <= due_soon_days:
        return DueStatus.DUE_SOON
    return DueStatus.UPCOMING


def classify_bill(
    bill: Bill,
    *,
    now: Optional[DateLike] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> DueStatus:
    """Classify a Bill using its derived paid status."""
    return classify_due_status(
        bill.due_date, bill.is_paid, now=now, due_soon_days=due_soon_days
    )


def sort_bills(bills: Iterable[Bill], *, now: Optional[DateLike] = None) -> list[Bill]:
    """Order bills for display.

    Unpaid bills come before paid ones; among unpaid bills the overdue
    ones lead, then everything by ascending due date. Paid bills keep
    their relative order.
    """
    today = _as_date(now, "now") if now is not None else date.today()

    def sort_key(bill: Bill):
        if bill.is_paid:
            return (1, 0, date.min)
        overdue = bill.due_date < today
        return (0, 0 if overdue else 1, bill.due_date)

    return sorted(bills, key=sort_key)


class DueSummary(BaseModel):
    """Dashboard counts for a set of bills."""

    overdue: int = 0
    due_soon: int = 0
    upcoming: int = 0
    paid: int = 0
    total_owing: Decimal = Field(
        default=Decimal("0"),
        description="Remaining balance across all unpaid bills",
    )


def summarize_bills(
    bills: Iterable[Bill],
    *,
    now: Optional[DateLike] = None,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
) -> DueSummary:
    """Count bills per due status and total the balance still owing."""
    counts = {status: 0 for status in DueStatus}
    owing = Decimal("0")
    for bill in bills:
        counts[classify_bill(bill, now=now, due_soon_days=due_soon_days)] += 1
        owing += bill.remaining_amount
    return DueSummary(
        overdue=counts[DueStatus.OVERDUE],
        due_soon=counts[DueStatus.DUE_SOON],
        upcoming=counts[DueStatus.UPCOMING],
        paid=counts[DueStatus.PAID],
        total_owing=owing,
    )
