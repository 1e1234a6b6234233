"""BillPort Core - Bill tracking, detection and insight logic."""

__version__ = "0.1.0"

from .bill_patterns import apply_recurring_detection, detect_bill_patterns
from .due_status import DueStatus, classify_due_status
from .insight_analyzer import InsightService, analyze
from .models import Bill, Insight, Payment, normalize_bill
from .payments import PaymentLedger, apply_payment, mark_paid
from .recurring_detector import RecurringBillDetector, detect_recurring

__all__ = [
    "Bill",
    "DueStatus",
    "Insight",
    "InsightService",
    "Payment",
    "PaymentLedger",
    "RecurringBillDetector",
    "analyze",
    "apply_payment",
    "apply_recurring_detection",
    "classify_due_status",
    "detect_bill_patterns",
    "detect_recurring",
    "mark_paid",
    "normalize_bill",
]
