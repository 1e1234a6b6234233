"""Models for bills detected from bank transactions and emails.

These records are derived on demand and never persisted by this package.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from billport_core.categories import BillCategory
from billport_core.models.bill import RecurringFrequency


class TransactionRecord(BaseModel):
    """A dated bank transaction attributed to a merchant."""

    merchant: str = Field(description="Merchant name as reported by the bank feed")
    amount: Decimal = Field(description="Transaction amount; debits may be negative")
    date: dt.date = Field(description="Posting date")
    category: Optional[str] = Field(
        default=None,
        description="Category hint supplied by the bank feed",
    )


class RecurringBillCandidate(BaseModel):
    """A merchant whose transactions recur at a regular interval."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "merchant": "Netflix",
                    "category": "subscription",
                    "average_amount": "16.49",
                    "frequency": "monthly",
                    "occurrences": 6,
                    "last_date": "2025-06-03",
                    "next_due_date": "2025-07-03",
                    "confidence": 0.97,
                }
            ]
        }
    }

    merchant: str = Field(description="Display name of the merchant")
    category: str = Field(description="Category of the recurring charge")
    average_amount: Decimal = Field(description="Mean charge, rounded to cents")
    frequency: RecurringFrequency = Field(description="Inferred recurrence interval")
    occurrences: int = Field(ge=2, description="Number of charges in the analyzed window")
    last_date: dt.date = Field(description="Date of the most recent charge")
    next_due_date: dt.date = Field(description="Projected date of the next charge")
    confidence: float = Field(
        ge=0.0,
        le=1.0,
        description="Heuristic confidence that the pattern is a real recurring bill",
    )


class EmailBillInfo(BaseModel):
    """Fields extracted from one email's sender, subject and snippet."""

    company: str = Field(description="Biller name inferred from the sender")
    amount: Optional[float] = Field(default=None, description="First dollar amount found")
    due_date: Optional[str] = Field(
        default=None,
        description="Due date text exactly as matched in the email",
    )
    category: BillCategory = Field(default=BillCategory.OTHER)
    confidence: float = Field(ge=0.0, le=1.0, description="Bill-likelihood score")


class EmailBillCandidate(EmailBillInfo):
    """An email judged likely to contain a bill."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Mail provider message id")
    from_: str = Field(alias="from", description="Raw From header")
    subject: str = Field(default="")
    date: str = Field(default="", description="Raw Date header")
    snippet: str = Field(default="")

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase shape consumed by the bills UI."""
        return {
            "id": self.id,
            "from": self.from_,
            "subject": self.subject,
            "date": self.date,
            "snippet": self.snippet,
            "company": self.company,
            "amount": self.amount,
            "dueDate": self.due_date,
            "category": self.category.value,
            "confidence": self.confidence,
        }


class PendingBill(BaseModel):
    """An email-detected bill awaiting the user's confirmation."""

    user_id: str
    gmail_message_id: str
    merchant_name: str
    amount: Optional[float] = None
    due_date: Optional[dt.date] = Field(
        default=None,
        description="Due date parsed from the matched text, when parseable",
    )
    confidence: str = Field(description="high, medium or low")
    raw_email_snippet: str = ""
    email_subject: str = ""
    email_from: str = ""
    email_date: str = ""
    status: str = Field(default="pending", description="pending, confirmed or rejected")
    category: Optional[str] = None
    matched_provider_id: Optional[str] = None
    matched_provider_name: Optional[str] = None


class RecurringDetection(BaseModel):
    """Recurrence analysis of one stored bill within its biller's history."""

    is_recurring: bool = Field(description="Confidence reached the recurring threshold")
    frequency: Optional[RecurringFrequency] = Field(
        default=None,
        description="Interval matched by the average gap between due dates",
    )
    confidence: float = Field(
        ge=0.0,
        le=1.0,
        description="Share of matching intervals scaled by history length",
    )
    avg_amount: Decimal = Field(description="Average of the three most recent bills")
    deviation_percent: Optional[float] = Field(
        default=None,
        description="Difference from avg_amount in percent; None for a lone bill",
    )
    deviation_flag: bool = Field(
        default=False,
        description="Set on the latest bill of a recurring biller when its amount moved notably",
    )


class RecurringProviderCheck(BaseModel):
    """Whether a biller being added already has bills on file."""

    found: bool
    count: int = 0
    frequency: Optional[RecurringFrequency] = None
