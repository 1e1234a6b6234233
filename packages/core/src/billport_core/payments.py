"""Payment application with clamping to the bill total.

apply_payment is the pure read-modify-write step for processor payments:
it reads the current paid amount, clamps the new total to the bill amount
and derives the new status. mark_paid does the same for payments the user
made outside the app. PaymentLedger runs either step under a lock for
callers that keep bills in memory; the Firestore deployment runs it inside
a transaction.
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog

from billport_core.exceptions import ValidationError
from billport_core.models.bill import Bill, Payment, PaymentMethod, PaymentType, RecordedVia
from billport_core.parsing import parse_amount, round_cents

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def apply_payment(
    bill: Bill,
    amount: Union[Decimal, int, float, str],
    processor_reference: str,
    *,
    now: Optional[datetime] = None,
) -> tuple[Bill, Payment]:
    """Apply a payment to a bill.

    The new paid amount is ``min(round_cents(paid + amount), total)``, so
    overpayments and concurrent partial payments can never push the bill
    above its total.

    Args:
        bill: The bill as currently stored.
        amount: The amount charged by the payment processor.
        processor_reference: External payment id for the audit record.
        now: Timestamp for the payment record; defaults to the current UTC time.

    Returns:
        The updated bill and the Payment audit record.

    Raises:
        ValidationError: If the amount is missing, unparseable or not positive.
    """
    payment_amount = parse_amount(amount)
    if payment_amount is None or payment_amount <= 0:
        raise ValidationError(
            "Payment amount must be a positive number",
            field="amount",
            value=str(amount),
            constraint="amount > 0",
        )
    if not processor_reference:
        raise ValidationError("processor_reference is required", field="processor_reference")

    return _settle(
        bill,
        payment_amount,
        now=now,
        processor_reference=processor_reference,
        recorded_via=RecordedVia.AUTO,
    )


def mark_paid(
    bill: Bill,
    amount: Union[Decimal, int, float, str, None] = None,
    *,
    method: Union[PaymentMethod, str] = PaymentMethod.ONLINE,
    confirmation_code: str = "",
    notes: str = "",
    now: Optional[datetime] = None,
) -> tuple[Bill, Payment]:
    """Record a payment the user made outside the app.

    Without an amount, or with an amount of zero or less, the remaining
    balance is paid.

    Raises:
        ValidationError: If the amount or method is invalid, or the bill has
            nothing left to pay.
    """
    payment_amount = Decimal("0")
    if amount is not None and amount != "":
        payment_amount = parse_amount(amount)
        if payment_amount is None:
            raise ValidationError(
                "Payment amount must be a number", field="amount", value=str(amount)
            )
    if payment_amount <= 0:
        payment_amount = bill.remaining_amount
    if payment_amount <= 0:
        raise ValidationError(
            "Bill has no remaining balance",
            field="amount",
            value=str(amount),
            constraint="remaining > 0",
        )
    try:
        payment_method = PaymentMethod(method)
    except ValueError:
        raise ValidationError(
            f"Unknown payment method: {method}", field="method", value=str(method)
        ) from None

    return _settle(
        bill,
        payment_amount,
        now=now,
        recorded_via=RecordedVia.MANUAL,
        method=payment_method,
        confirmation_code=confirmation_code.strip(),
        notes=notes.strip(),
    )


def _settle(
    bill: Bill, payment_amount: Decimal, *, now: Optional[datetime], **record
) -> tuple[Bill, Payment]:
    new_paid = min(round_cents(bill.paid_amount + payment_amount), bill.total_amount)
    updated = bill.model_copy(update={"paid_amount": new_paid})

    payment = Payment(
        bill_id=bill.id,
        user_id=bill.user_id,
        amount_paid=payment_amount,
        payment_type=PaymentType.FULL if updated.is_paid else PaymentType.PARTIAL,
        timestamp=now or _utc_now(),
        **record,
    )

    logger.info(
        "payment_applied",
        bill_id=bill.id,
        amount=str(payment_amount),
        paid_before=str(bill.paid_amount),
        paid_after=str(new_paid),
        status=updated.status.value,
        recorded_via=payment.recorded_via.value,
    )
    return updated, payment


class PaymentLedger:
    """In-memory bill store that applies payments atomically.

    Each payment reads the current bill, clamps and writes the result and
    appends the Payment record while holding a single lock.
    """

    def __init__(self, bills: Iterable[Bill] = ()):
        self._lock = threading.Lock()
        self._bills: dict[str, Bill] = {}
        self._payments: list[Payment] = []
        for bill in bills:
            self.add(bill)

    def add(self, bill: Bill) -> None:
        if not bill.id:
            raise ValidationError("Bills stored in a ledger need an id", field="id")
        with self._lock:
            self._bills[bill.id] = bill

    def get(self, bill_id: str) -> Bill:
        with self._lock:
            try:
                return self._bills[bill_id]
            except KeyError:
                raise ValidationError("Bill not found", field="bill_id", value=bill_id) from None

    def pay(
        self,
        bill_id: str,
        amount: Union[Decimal, int, float, str],
        processor_reference: str,
        *,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Bill, Payment]:
        """Apply a payment to a stored bill.

        Raises:
            ValidationError: If the bill does not exist, belongs to another
                user or the amount is invalid.
        """
        with self._lock:
            bill = self._owned(bill_id, user_id)
            updated, payment = apply_payment(bill, amount, processor_reference, now=now)
            return self._store(updated, payment)

    def mark_paid(
        self,
        bill_id: str,
        amount: Union[Decimal, int, float, str, None] = None,
        *,
        user_id: Optional[str] = None,
        **details,
    ) -> tuple[Bill, Payment]:
        """Record a manual payment against a stored bill; see :func:`mark_paid`."""
        with self._lock:
            bill = self._owned(bill_id, user_id)
            updated, payment = mark_paid(bill, amount, **details)
            return self._store(updated, payment)

    def payments_for(self, bill_id: str) -> list[Payment]:
        with self._lock:
            return [p for p in self._payments if p.bill_id == bill_id]

    def _owned(self, bill_id: str, user_id: Optional[str]) -> Bill:
        bill = self._bills.get(bill_id)
        if bill is None:
            raise ValidationError("Bill not found", field="bill_id", value=bill_id)
        if user_id is not None and bill.user_id != user_id:
            raise ValidationError("Bill does not belong to user", field="user_id")
        return bill

    def _store(self, updated: Bill, payment: Payment) -> tuple[Bill, Payment]:
        self._bills[updated.id] = updated
        self._payments.append(payment)
        return updated, payment
