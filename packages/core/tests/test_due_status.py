"""Tests for due-status classification, sorting and summaries."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from billport_core.due_status import (
    DEFAULT_DUE_SOON_DAYS,
    DueStatus,
    classify_bill,
    classify_due_status,
    days_until_due,
    sort_bills,
    summarize_bills,
)
from billport_core.exceptions import ValidationError
from billport_core.models import Bill


def make_bill(bill_id: str, due: date, total: str = "50", paid: str = "0") -> Bill:
    return Bill(
        id=bill_id,
        company="Bell",
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        due_date=due,
    )


class TestClassifyDueStatus:
    """Test suite for classify_due_status."""

    def test_default_window_is_seven_days(self):
        """The due-soon window defaults to one week."""
        assert DEFAULT_DUE_SOON_DAYS == 7

    def test_paid_wins_over_everything(self, today):
        """A paid bill is PAID even when its due date is long past."""
        assert classify_due_status(date(2020, 1, 1), True, now=today) == DueStatus.PAID

    def test_yesterday_is_overdue(self, today):
        """A due date before today is overdue."""
        assert classify_due_status(date(2025, 7, 31), now=today) == DueStatus.OVERDUE

    def test_today_is_due_soon(self, today):
        """A bill due today is due soon, not overdue."""
        assert classify_due_status(today, now=today) == DueStatus.DUE_SOON

    def test_due_today_late_in_the_day(self):
        """Time of day is ignored when comparing dates."""
        now = datetime(2025, 8, 1, 23, 59)
        assert classify_due_status(datetime(2025, 8, 1, 0, 0), now=now) == DueStatus.DUE_SOON

    def test_window_edge_is_inclusive(self, today):
        """Exactly due_soon_days away is still due soon."""
        assert classify_due_status(date(2025, 8, 8), now=today) == DueStatus.DUE_SOON
        assert classify_due_status(date(2025, 8, 9), now=today) == DueStatus.UPCOMING

    def test_custom_window(self, today):
        """A custom window moves the due-soon boundary."""
        due = date(2025, 8, 4)
        assert classify_due_status(due, now=today, due_soon_days=3) == DueStatus.DUE_SOON
        assert classify_due_status(due, now=today, due_soon_days=2) == DueStatus.UPCOMING

    def test_zero_window_only_today(self, today):
        """A zero-day window marks only bills due today as due soon."""
        assert classify_due_status(today, now=today, due_soon_days=0) == DueStatus.DUE_SOON
        assert classify_due_status(date(2025, 8, 2), now=today, due_soon_days=0) == (
            DueStatus.UPCOMING
        )

    def test_missing_due_date_raises(self, today):
        """An unpaid bill without a due date is a caller error."""
        with pytest.raises(ValidationError) as exc_info:
            classify_due_status(None, now=today)
        assert exc_info.value.field == "due_date"

    def test_negative_window_raises(self, today):
        """A negative window is rejected."""
        with pytest.raises(ValidationError):
            classify_due_status(today, now=today, due_soon_days=-1)

    def test_days_until_due(self, today):
        """days_until_due is negative for past dates."""
        assert days_until_due(date(2025, 8, 11), today) == 10
        assert days_until_due(date(2025, 7, 30), today) == -2

    def test_string_dates_are_parsed(self, today):
        """Stored date strings classify like dates."""
        assert classify_due_status("2025-08-15", now=today) == DueStatus.UPCOMING
        assert classify_due_status("2025-07-31T09:00:00Z", now="2025-08-01") == (
            DueStatus.OVERDUE
        )
        assert days_until_due("2025-08-11", today) == 10

    def test_unparseable_date_raises(self, today):
        with pytest.raises(ValidationError) as exc_info:
            classify_due_status("next tuesday", now=today)
        assert exc_info.value.field == "due_date"

        with pytest.raises(ValidationError) as exc_info:
            classify_due_status(today, now=12345)
        assert exc_info.value.field == "now"


class TestSortBills:
    """Test suite for sort_bills."""

    def test_overdue_first_then_by_date_then_paid(self, today):
        """Unpaid bills lead with overdue ones first; paid bills go last."""
        paid = make_bill("paid", date(2025, 7, 1), paid="50")
        later = make_bill("later", date(2025, 9, 1))
        overdue = make_bill("overdue", date(2025, 7, 20))
        soon = make_bill("soon", date(2025, 8, 3))

        ordered = sort_bills([paid, later, overdue, soon], now=today)

        assert [b.id for b in ordered] == ["overdue", "soon", "later", "paid"]

    def test_paid_bills_keep_relative_order(self, today):
        """The sort is stable for paid bills."""
        a = make_bill("a", date(2025, 9, 1), paid="50")
        b = make_bill("b", date(2025, 7, 1), paid="50")
        assert [x.id for x in sort_bills([a, b], now=today)] == ["a", "b"]


class TestSummarizeBills:
    """Test suite for summarize_bills and classify_bill."""

    def test_counts_and_owing(self, today):
        """Counts cover every status and owing sums remaining balances."""
        bills = [
            make_bill("o", date(2025, 7, 1), total="40"),
            make_bill("s", date(2025, 8, 2), total="60", paid="10"),
            make_bill("u", date(2025, 10, 1), total="25"),
            make_bill("p", date(2025, 7, 1), total="30", paid="30"),
        ]

        summary = summarize_bills(bills, now=today)

        assert summary.overdue == 1
        assert summary.due_soon == 1
        assert summary.upcoming == 1
        assert summary.paid == 1
        assert summary.total_owing == Decimal("115")

    def test_classify_bill_uses_paid_status(self, today):
        """classify_bill treats a fully paid bill as PAID."""
        bill = make_bill("p", date(2025, 7, 1), total="30", paid="30")
        assert classify_bill(bill, now=today) == DueStatus.PAID
