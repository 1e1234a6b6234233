"""Tests for the Bill model and legacy record normalization."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from billport_core.exceptions import ValidationError
from billport_core.models import (
    Bill,
    BillingCycle,
    BillStatus,
    RecurringFrequency,
    derive_bill_status,
    normalize_bill,
    normalize_bills,
)


class TestBillStatus:
    """Test suite for derived bill status."""

    @pytest.mark.parametrize(
        "total,paid,expected",
        [
            ("100", "0", BillStatus.UNPAID),
            ("100", "40", BillStatus.PARTIAL),
            ("100", "100", BillStatus.PAID),
            ("0", "0", BillStatus.UNPAID),
        ],
    )
    def test_derive_bill_status(self, total, paid, expected):
        """Status follows paid vs total."""
        assert derive_bill_status(Decimal(total), Decimal(paid)) == expected

    def test_status_is_computed(self, rogers_bill):
        """Bill.status is derived and serialized."""
        assert rogers_bill.status == BillStatus.UNPAID
        assert rogers_bill.model_dump()["status"] == BillStatus.UNPAID
        assert rogers_bill.remaining_amount == Decimal("89.99")

    def test_paid_cannot_exceed_total(self):
        """A bill with paid above total is rejected."""
        with pytest.raises(PydanticValidationError):
            Bill(
                company="Bell",
                total_amount=Decimal("50"),
                paid_amount=Decimal("60"),
                due_date=date(2025, 8, 1),
            )

    def test_amount_strings_are_coerced(self):
        """Currency strings become Decimals."""
        bill = Bill(company="Bell", total_amount="$1,250.50", due_date=date(2025, 8, 1))
        assert bill.total_amount == Decimal("1250.50")

    def test_bill_is_immutable(self, rogers_bill):
        """Bills are frozen."""
        with pytest.raises(PydanticValidationError):
            rogers_bill.paid_amount = Decimal("10")

    def test_biller_falls_back_to_name(self):
        """The biller is the company, else the bill name."""
        bill = Bill(name="Rent", company="", total_amount=1500, due_date=date(2025, 8, 1))
        assert bill.biller == "Rent"


class TestRecurringFrequency:
    """Test suite for frequency parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Monthly", RecurringFrequency.MONTHLY),
            ("biweekly", RecurringFrequency.BIWEEKLY),
            ("bi-weekly", RecurringFrequency.BIWEEKLY),
            ("yearly", RecurringFrequency.ANNUAL),
        ],
    )
    def test_aliases(self, raw, expected):
        """Case and legacy spellings map to the canonical members."""
        assert RecurringFrequency(raw) == expected

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            RecurringFrequency("fortnightly-ish")


class TestNormalizeBill:
    """Test suite for normalize_bill."""

    def test_legacy_camel_case_record(self):
        """Legacy keys map onto the canonical fields."""
        bill = normalize_bill(
            {
                "id": "abc",
                "userId": "u1",
                "companyName": "Enbridge Gas",
                "totalAmount": 120.456,
                "paidAmount": "20",
                "dueDate": "2025-09-01T00:00:00Z",
                "billingCycle": "monthly",
                "isRecurring": True,
                "recurringFrequency": "Monthly",
                "createdAt": datetime(2025, 1, 1, 12, 0),
            }
        )

        assert bill.id == "abc"
        assert bill.user_id == "u1"
        assert bill.company == "Enbridge Gas"
        assert bill.name == "Enbridge Gas"
        assert bill.total_amount == Decimal("120.46")
        assert bill.paid_amount == Decimal("20.00")
        assert bill.due_date == date(2025, 9, 1)
        assert bill.billing_cycle == BillingCycle.MONTHLY
        assert bill.recurring_frequency == RecurringFrequency.MONTHLY
        assert bill.status == BillStatus.PARTIAL

    def test_legacy_paid_flag_marks_bill_paid(self):
        """A legacy paid status with no paid amount becomes fully paid."""
        bill = normalize_bill(
            {"company": "Bell", "amount": "75", "dueDate": "2025-08-01", "status": "Paid"}
        )
        assert bill.paid_amount == Decimal("75.00")
        assert bill.status == BillStatus.PAID

    def test_overpaid_record_is_clamped(self):
        """Stored paid amounts above the total are clamped."""
        bill = normalize_bill(
            {"company": "Bell", "totalAmount": 50, "paidAmount": 80, "dueDate": "2025-08-01"}
        )
        assert bill.paid_amount == Decimal("50.00")

    def test_firestore_timestamp_due_date(self):
        """Objects with toDate() are accepted as due dates."""

        class FakeTimestamp:
            def toDate(self):
                return datetime(2025, 8, 20, 4, 0)

        bill = normalize_bill({"company": "Bell", "totalAmount": 50, "dueDate": FakeTimestamp()})
        assert bill.due_date == date(2025, 8, 20)

    def test_unknown_enum_values_are_dropped(self):
        """Unrecognized cycles do not fail the record."""
        bill = normalize_bill(
            {"company": "Bell", "totalAmount": 50, "dueDate": "2025-08-01", "billingCycle": "daily"}
        )
        assert bill.billing_cycle is None

    def test_missing_due_date_raises(self):
        """A record without a usable due date cannot become a Bill."""
        with pytest.raises(ValidationError) as exc_info:
            normalize_bill({"company": "Bell", "totalAmount": 50, "dueDate": "someday"})
        assert exc_info.value.field == "dueDate"

    def test_normalize_bills_skips_bad_records(self):
        """normalize_bills drops records that fail normalization."""
        bills = normalize_bills(
            [
                {"id": "ok", "company": "Bell", "totalAmount": 50, "dueDate": "2025-08-01"},
                {"id": "bad", "company": "Bell", "totalAmount": 50},
            ]
        )
        assert [b.id for b in bills] == ["ok"]

    def test_non_string_fields_are_dropped(self):
        """List or dict values in text fields do not fail the record."""
        bill = normalize_bill(
            {
                "id": 42,
                "company": "Bell",
                "totalAmount": 50,
                "dueDate": "2025-08-01",
                "category": ["phone", "internet"],
                "providerId": {"id": "bell"},
            }
        )
        assert bill.id == "42"
        assert bill.category is None
        assert bill.provider_id is None

    def test_recurring_detection_fields(self):
        bill = normalize_bill(
            {
                "company": "Hydro One",
                "totalAmount": 140,
                "dueDate": "2025-08-15",
                "recurringConfidence": 0.8,
                "avgRecurringAmount": "120.004",
                "amountAlertDismissed": True,
            }
        )
        assert bill.recurring_confidence == 0.8
        assert bill.avg_recurring_amount == Decimal("120.00")
        assert bill.amount_alert_dismissed is True
        assert bill.amount_deviation_flag is False

    @pytest.mark.parametrize("confidence", [1.5, -0.1, True, "high"])
    def test_out_of_range_confidence_is_dropped(self, confidence):
        bill = normalize_bill(
            {
                "company": "Bell",
                "totalAmount": 50,
                "dueDate": "2025-08-01",
                "recurringConfidence": confidence,
            }
        )
        assert bill.recurring_confidence is None

    def test_normalize_bills_skips_non_mappings(self):
        bills = normalize_bills(
            [None, "bill", {"id": "ok", "company": "Bell", "totalAmount": 50, "dueDate": "2025-08-01"}]
        )
        assert [b.id for b in bills] == ["ok"]
