"""Due-date reminders for unpaid bills."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from billport_core.due_status import (
    DEFAULT_DUE_SOON_DAYS,
    DateLike,
    DueStatus,
    classify_bill,
    days_until_due,
)
from billport_core.models.bill import Bill


class ReminderType(str, Enum):
    DUE_SOON = "due_soon"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


class Reminder(BaseModel):
    """A notification that an unpaid bill needs attention."""

    bill_id: Optional[str] = None
    biller: str
    type: ReminderType
    due_date: date
    days_until_due: int = Field(description="Negative once the bill is overdue")
    amount_due: Decimal = Field(description="Remaining balance")
    message: str


def _message(bill: Bill, kind: ReminderType, days: int) -> str:
    amount = f"${bill.remaining_amount:.2f}"
    if kind == ReminderType.OVERDUE:
        unit = "day" if days == -1 else "days"
        return f"Your {bill.biller} bill of {amount} is {-days} {unit} overdue."
    if kind == ReminderType.DUE_TODAY:
        return f"Your {bill.biller} bill of {amount} is due today."
    unit = "day" if days == 1 else "days"
    return f"Your {bill.biller} bill of {amount} is due in {days} {unit}."


def build_reminders(
    bills: Iterable[Bill],
    now: Optional[DateLike] = None,
    lead_days: int = DEFAULT_DUE_SOON_DAYS,
) -> list[Reminder]:
    """Build reminders for unpaid bills that are overdue or due within ``lead_days``.

    Paid and upcoming bills produce nothing. Reminders are ordered most
    urgent first: overdue by how late they are, then by due date.
    """
    reminders = []
    for bill in bills:
        status = classify_bill(bill, now=now, due_soon_days=lead_days)
        if status not in (DueStatus.OVERDUE, DueStatus.DUE_SOON):
            continue
        days = days_until_due(bill.due_date, now)
        if status == DueStatus.OVERDUE:
            kind = ReminderType.OVERDUE
        elif days == 0:
            kind = ReminderType.DUE_TODAY
        else:
            kind = ReminderType.DUE_SOON
        reminders.append(
            Reminder(
                bill_id=bill.id,
                biller=bill.biller,
                type=kind,
                due_date=bill.due_date,
                days_until_due=days,
                amount_due=bill.remaining_amount,
                message=_message(bill, kind, days),
            )
        )
    reminders.sort(key=lambda r: r.days_until_due)
    return reminders
