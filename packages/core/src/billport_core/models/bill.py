"""Canonical bill and payment models.

Bills stored by earlier versions of the app use several field spellings
(``amount`` vs ``totalAmount``, ``isPaid`` as 0/1, ``paid`` as a boolean,
``status`` strings such as ``partially_paid``). normalize_bill is the one
place those shapes are migrated; everything downstream works with Bill.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

import structlog
from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from billport_core.exceptions import ValidationError
from billport_core.parsing import (
    first_present,
    parse_amount,
    parse_date,
    round_cents,
    text_or_none,
)

logger = structlog.get_logger()


class BillStatus(str, Enum):
    """Payment status derived from paid vs total amount."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class BillingCycle(str, Enum):
    """How often the biller issues a bill."""

    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    ANNUAL = "annual"
    ONE_TIME = "one-time"


class RecurringFrequency(str, Enum):
    """Recurrence interval of a bill or detected transaction pattern."""

    WEEKLY = "weekly"
    BIWEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"

    @classmethod
    def _missing_(cls, value):
        aliases = {
            "biweekly": cls.BIWEEKLY,
            "bi_weekly": cls.BIWEEKLY,
            "yearly": cls.ANNUAL,
            "annually": cls.ANNUAL,
        }
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        for member in cls:
            if member.value == lowered:
                return member
        return aliases.get(lowered)


class PaymentType(str, Enum):
    """Whether a payment settled the remaining balance."""

    FULL = "full"
    PARTIAL = "partial"


class PaymentMethod(str, Enum):
    """How the user paid a bill recorded by hand."""

    ONLINE = "online"
    MAIL = "mail"
    IN_PERSON = "in-person"
    OTHER = "other"


class RecordedVia(str, Enum):
    """Whether a payment came from the payment processor or was entered by the user."""

    AUTO = "auto"
    MANUAL = "manual"


def derive_bill_status(total_amount: Decimal, paid_amount: Decimal) -> BillStatus:
    """Derive the bill status from its amounts.

    A bill is paid once a positive total is fully covered, partial while
    some but not all of it is paid, and unpaid otherwise.
    """
    if total_amount > 0 and paid_amount >= total_amount:
        return BillStatus.PAID
    if paid_amount > 0:
        return BillStatus.PARTIAL
    return BillStatus.UNPAID


class Bill(BaseModel):
    """One payable obligation owed to a biller.

    ``status`` is computed from ``paid_amount`` and ``total_amount`` and
    cannot be set directly. Instances are immutable; payment updates
    produce a new Bill through apply_payment.
    """

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": "bill_123",
                    "user_id": "user_1",
                    "name": "Home phone",
                    "company": "Rogers",
                    "total_amount": "89.99",
                    "paid_amount": "0",
                    "due_date": "2025-08-15",
                    "category": "phone",
                    "is_recurring": True,
                    "recurring_frequency": "monthly",
                }
            ]
        },
    }

    id: Optional[str] = Field(
        default=None,
        description="Opaque identifier assigned at creation",
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the bill",
    )
    name: str = Field(
        default="",
        description="Display label for the bill",
    )
    company: str = Field(
        description="Billing entity the amount is owed to",
    )
    total_amount: Decimal = Field(
        ge=Decimal("0"),
        description="Amount due in CAD",
    )
    paid_amount: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("0"),
        description="Amount paid so far in CAD",
    )
    due_date: date = Field(description="Calendar due date")
    category: Optional[str] = Field(
        default=None,
        description="Free-form grouping tag (utilities, phone, ...)",
    )
    billing_cycle: Optional[BillingCycle] = Field(
        default=None,
        description="Billing cycle reported by the user",
    )
    is_recurring: bool = Field(
        default=False,
        description="Whether the bill is known to recur",
    )
    recurring_frequency: Optional[RecurringFrequency] = Field(
        default=None,
        description="Recurrence interval when is_recurring is set",
    )
    recurring_confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Detected recurrence confidence; 1.0 once the user confirms it",
    )
    avg_recurring_amount: Optional[Decimal] = Field(
        default=None,
        description="Average of the biller's three most recent bills",
    )
    amount_deviation_percent: Optional[float] = Field(
        default=None,
        description="Difference from the recent average in percent",
    )
    amount_deviation_flag: bool = Field(
        default=False,
        description="Latest recurring bill differs notably from the recent average",
    )
    amount_alert_dismissed: bool = Field(
        default=False,
        description="User dismissed the amount alert for this bill",
    )
    provider_id: Optional[str] = Field(
        default=None,
        description="Provider registry id, or custom_<slug> for unknown billers",
    )
    account_number: Optional[str] = Field(
        default=None,
        description="Account number with the biller",
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="When the bill was created",
    )

    @field_validator("total_amount", "paid_amount", mode="before")
    @classmethod
    def coerce_amount_to_decimal(cls, v):
        """Coerce string and float amounts to Decimal."""
        if isinstance(v, (str, float)):
            parsed = parse_amount(v)
            if parsed is None:
                raise ValueError(f"Invalid amount: {v!r}")
            return parsed
        return v

    @model_validator(mode="after")
    def paid_not_above_total(self):
        """paid_amount may never exceed total_amount."""
        if self.paid_amount > self.total_amount:
            raise ValueError("paid_amount cannot exceed total_amount")
        return self

    @computed_field
    @property
    def status(self) -> BillStatus:
        """Status derived from the paid and total amounts."""
        return derive_bill_status(self.total_amount, self.paid_amount)

    @computed_field
    @property
    def remaining_amount(self) -> Decimal:
        """Balance still owing."""
        return max(self.total_amount - self.paid_amount, Decimal("0"))

    @property
    def is_paid(self) -> bool:
        return self.status == BillStatus.PAID

    @property
    def biller(self) -> str:
        """Name used to group bills by biller."""
        return self.company or self.name


class Payment(BaseModel):
    """Append-only audit record of a completed payment against a bill."""

    bill_id: Optional[str] = Field(description="Bill the payment was applied to")
    user_id: Optional[str] = Field(description="User who made the payment")
    amount_paid: Decimal = Field(gt=Decimal("0"), description="Amount charged in CAD")
    payment_type: PaymentType = Field(description="Full or partial payment")
    processor_reference: Optional[str] = Field(
        default=None,
        description="External processor reference (Stripe PaymentIntent id)",
    )
    recorded_via: RecordedVia = Field(default=RecordedVia.AUTO)
    method: Optional[PaymentMethod] = Field(
        default=None,
        description="Payment method for manually recorded payments",
    )
    confirmation_code: str = Field(default="", description="Biller confirmation number")
    notes: str = Field(default="")
    timestamp: datetime = Field(description="When the payment was recorded")


_LEGACY_NAME_KEYS = ("companyName", "company", "providerName", "billName", "name")
_PAID_STATUSES = {"paid"}


def _coerce_enum(enum_cls, value):
    if value in (None, ""):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug("unknown_enum_value", enum=enum_cls.__name__, value=value)
        return None


def _confidence_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0.0 <= value <= 1.0:
        return float(value)
    return None


def _cents_or_none(value: Optional[Decimal]) -> Optional[Decimal]:
    return round_cents(value) if value is not None else None


def normalize_bill(raw: Mapping[str, Any]) -> Bill:
    """Migrate a stored bill record of any historical shape to a Bill.

    Args:
        raw: Document data as stored, with camelCase or snake_case keys.

    Returns:
        The canonical Bill.

    Raises:
        ValidationError: If the record has no usable due date.
    """
    company = text_or_none(first_present(raw, *_LEGACY_NAME_KEYS)) or ""
    name = text_or_none(first_present(raw, "name", "billName")) or company

    total = parse_amount(first_present(raw, "totalAmount", "total_amount", "amount"))
    if total is None or total < 0:
        total = Decimal("0")
    paid = parse_amount(first_present(raw, "paidAmount", "paid_amount", "amountPaid"))
    if paid is None or paid < 0:
        paid = Decimal("0")

    status_text = str(raw.get("status") or "").strip().lower()
    legacy_paid = (
        status_text in _PAID_STATUSES
        or bool(raw.get("isPaid"))
        or raw.get("paid") is True
    )
    if legacy_paid and paid < total:
        paid = total
    paid = min(paid, total)

    raw_due = first_present(raw, "dueDate", "due_date")
    due = parse_date(raw_due)
    if due is None:
        raise ValidationError(
            "Bill record has no usable due date",
            field="dueDate",
            value=str(raw_due) if raw_due is not None else None,
        )

    created_raw = first_present(raw, "createdAt", "created_at")
    created_at = created_raw if isinstance(created_raw, datetime) else None

    return Bill(
        id=text_or_none(first_present(raw, "id")),
        user_id=text_or_none(first_present(raw, "userId", "user_id")),
        name=name,
        company=company,
        total_amount=round_cents(total),
        paid_amount=round_cents(paid),
        due_date=due,
        category=text_or_none(raw.get("category")),
        billing_cycle=_coerce_enum(BillingCycle, first_present(raw, "billingCycle", "frequency")),
        is_recurring=bool(raw.get("isRecurring") or raw.get("is_recurring")),
        recurring_frequency=_coerce_enum(
            RecurringFrequency,
            first_present(raw, "recurringFrequency", "recurring_frequency"),
        ),
        recurring_confidence=_confidence_or_none(
            first_present(raw, "recurringConfidence", "recurring_confidence")
        ),
        avg_recurring_amount=_cents_or_none(
            parse_amount(first_present(raw, "avgRecurringAmount", "avg_recurring_amount"))
        ),
        amount_alert_dismissed=raw.get("amountAlertDismissed") is True,
        provider_id=text_or_none(first_present(raw, "providerId", "provider_id")),
        account_number=text_or_none(first_present(raw, "accountNumber", "account_number")),
        created_at=created_at,
    )


def normalize_bills(records: Iterable[Mapping[str, Any]]) -> list[Bill]:
    """Normalize many records, skipping those that cannot become a Bill."""
    bills: list[Bill] = []
    for record in records:
        if not isinstance(record, Mapping):
            logger.warning("bill_record_skipped", error="record is not a mapping")
            continue
        try:
            bills.append(normalize_bill(record))
        except ValidationError as e:
            logger.warning("bill_record_skipped", bill_id=record.get("id"), error=str(e))
    return bills
