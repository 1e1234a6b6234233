"""Data models for billport-core.

This package provides:
- Canonical bills, payments and legacy-record normalization (bill.py)
- Transactions and detected bill candidates (detection.py)
- Per-biller insights (insight.py)
- Session-local split bills (splitting.py)
"""

from billport_core.models.bill import (
    Bill,
    BillingCycle,
    BillStatus,
    Payment,
    PaymentMethod,
    PaymentType,
    RecordedVia,
    RecurringFrequency,
    derive_bill_status,
    normalize_bill,
    normalize_bills,
)
from billport_core.models.detection import (
    EmailBillCandidate,
    EmailBillInfo,
    PendingBill,
    RecurringBillCandidate,
    RecurringDetection,
    RecurringProviderCheck,
    TransactionRecord,
)
from billport_core.models.insight import (
    BillerHistoryEntry,
    Insight,
    InsightSource,
    TrendDirection,
)
from billport_core.models.splitting import Person, SplitBill

__all__ = [
    # Bills and payments
    "Bill",
    "BillingCycle",
    "BillStatus",
    "Payment",
    "PaymentMethod",
    "PaymentType",
    "RecordedVia",
    "RecurringFrequency",
    "derive_bill_status",
    "normalize_bill",
    "normalize_bills",
    # Detection
    "EmailBillCandidate",
    "EmailBillInfo",
    "PendingBill",
    "RecurringBillCandidate",
    "RecurringDetection",
    "RecurringProviderCheck",
    "TransactionRecord",
    # Insights
    "BillerHistoryEntry",
    "Insight",
    "InsightSource",
    "TrendDirection",
    # Splitting
    "Person",
    "SplitBill",
]
