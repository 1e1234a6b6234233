"""Recurrence detection over the user's stored bills.

Where recurring_detector works on bank transactions, this module looks at
bills already on file. Bills are grouped by provider id (or by biller
name when the provider is unknown) and the average gap between due dates
is matched to a range:

- monthly: 25-35 days
- quarterly: 80-100 days
- annual: 350-380 days

confidence = (intervals inside the range / all intervals) * min(n, 5) / 5

A biller is recurring at confidence >= 0.5. The latest bill of a
recurring biller is flagged when it differs from the average of the three
most recent bills by more than 15% or more than $10.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

import structlog

from billport_core.exceptions import ValidationError
from billport_core.models.bill import Bill, RecurringFrequency
from billport_core.models.detection import RecurringDetection, RecurringProviderCheck
from billport_core.parsing import round_cents, round_half_up

logger = structlog.get_logger()

FREQUENCY_RANGES: list[tuple[RecurringFrequency, int, int]] = [
    (RecurringFrequency.MONTHLY, 25, 35),
    (RecurringFrequency.QUARTERLY, 80, 100),
    (RecurringFrequency.ANNUAL, 350, 380),
]

RECURRING_THRESHOLD = 0.5
FULL_HISTORY_COUNT = 5
RECENT_WINDOW = 3
DEVIATION_RATIO = Decimal("0.15")
DEVIATION_AMOUNT = Decimal("10")
CONFIRMED_CONFIDENCE = 1.0

UNKNOWN_PROVIDER = "unknown"


def bill_group_key(bill: Bill) -> str:
    """Provider id when known, otherwise the lower-cased biller name."""
    return _group_key(bill.biller, bill.provider_id)


def _group_key(company_name: str, provider_id: Optional[str]) -> str:
    if provider_id and provider_id != UNKNOWN_PROVIDER:
        return provider_id
    return company_name.strip().lower()


def _intervals(ordered: Sequence[Bill]) -> list[int]:
    gaps = [(b.due_date - a.due_date).days for a, b in zip(ordered, ordered[1:])]
    return [g for g in gaps if g > 0]


def _match_range(intervals: list[int]) -> Optional[tuple[RecurringFrequency, int, int]]:
    if not intervals:
        return None
    average = sum(intervals) / len(intervals)
    for entry in FREQUENCY_RANGES:
        _, low, high = entry
        if low <= average <= high:
            return entry
    return None


def _group_detections(ordered: list[Bill]) -> list[RecurringDetection]:
    """Detections for a biller's bills, in the same order as ``ordered``."""
    intervals = _intervals(ordered)
    matched = _match_range(intervals)
    frequency = matched[0] if matched else None
    confidence = 0.0
    if matched:
        _, low, high = matched
        inside = sum(1 for g in intervals if low <= g <= high)
        confidence = (inside / len(intervals)) * (
            min(len(ordered), FULL_HISTORY_COUNT) / FULL_HISTORY_COUNT
        )
    is_recurring = frequency is not None and confidence >= RECURRING_THRESHOLD

    recent = [b.total_amount for b in ordered[-RECENT_WINDOW:]]
    recent_avg = sum(recent, Decimal("0")) / len(recent)

    latest = ordered[-1]
    diff = abs(latest.total_amount - recent_avg)
    latest_flag = is_recurring and (
        diff > recent_avg * DEVIATION_RATIO or diff > DEVIATION_AMOUNT
    )

    detections = []
    for bill in ordered:
        if recent_avg > 0:
            percent = round_half_up(float((bill.total_amount - recent_avg) / recent_avg * 100))
        else:
            percent = 0.0
        detections.append(
            RecurringDetection(
                is_recurring=is_recurring,
                frequency=frequency,
                confidence=round(confidence, 2),
                avg_amount=round_cents(recent_avg),
                deviation_percent=percent,
                deviation_flag=latest_flag if bill is latest else False,
            )
        )
    return detections


def detect_bill_patterns(bills: Iterable[Bill]) -> dict[str, RecurringDetection]:
    """Analyze stored bills per biller and return a detection per bill id.

    Bills without an id are grouped with the others but get no entry.
    """
    groups: dict[str, list[Bill]] = defaultdict(list)
    for bill in bills:
        groups[bill_group_key(bill)].append(bill)

    results: dict[str, RecurringDetection] = {}
    for group in groups.values():
        if len(group) < 2:
            for bill in group:
                if bill.id:
                    results[bill.id] = RecurringDetection(
                        is_recurring=False,
                        confidence=0.0,
                        avg_amount=bill.total_amount,
                    )
            continue

        ordered = sorted(group, key=lambda b: b.due_date)
        for bill, detection in zip(ordered, _group_detections(ordered)):
            if bill.id:
                results[bill.id] = detection

    logger.debug("bill_patterns_detected", billers=len(groups), bills=len(results))
    return results


def apply_recurring_detection(bills: Sequence[Bill]) -> list[Bill]:
    """Return the bills updated with their detected recurrence.

    Bills the user confirmed as recurring (confidence 1.0) stay recurring
    and keep their frequency. A dismissed amount alert stays dismissed.
    """
    detections = detect_bill_patterns(bills)
    updated = []
    for bill in bills:
        found = detections.get(bill.id) if bill.id else None
        if found is None:
            updated.append(bill)
            continue

        confirmed = bill.recurring_confidence == CONFIRMED_CONFIDENCE
        updated.append(
            bill.model_copy(
                update={
                    "is_recurring": True if confirmed else found.is_recurring,
                    "recurring_frequency": (
                        (bill.recurring_frequency or found.frequency) if confirmed else found.frequency
                    ),
                    "recurring_confidence": CONFIRMED_CONFIDENCE if confirmed else found.confidence,
                    "avg_recurring_amount": found.avg_amount,
                    "amount_deviation_percent": found.deviation_percent,
                    "amount_deviation_flag": found.deviation_flag and not bill.amount_alert_dismissed,
                }
            )
        )
    return updated


def confirm_recurring(bill: Bill, frequency: Union[RecurringFrequency, str]) -> Bill:
    """Mark a bill as recurring on the user's word.

    Raises:
        ValidationError: If ``frequency`` is not a known frequency.
    """
    try:
        freq = RecurringFrequency(frequency)
    except ValueError:
        raise ValidationError(
            f"Unknown frequency: {frequency}",
            field="frequency",
            value=str(frequency),
        ) from None
    return bill.model_copy(
        update={
            "is_recurring": True,
            "recurring_frequency": freq,
            "recurring_confidence": CONFIRMED_CONFIDENCE,
        }
    )


def dismiss_amount_alert(bill: Bill) -> Bill:
    return bill.model_copy(update={"amount_deviation_flag": False, "amount_alert_dismissed": True})


def check_for_recurring_provider(
    bills: Iterable[Bill],
    company_name: str,
    provider_id: Optional[str] = None,
) -> RecurringProviderCheck:
    """Look for existing bills from the biller being added.

    The frequency defaults to monthly and becomes quarterly or annual when
    the existing bills' average gap falls in those ranges.
    """
    key = _group_key(company_name, provider_id)
    matches = sorted((b for b in bills if bill_group_key(b) == key), key=lambda b: b.due_date)
    if not matches:
        return RecurringProviderCheck(found=False)

    frequency = RecurringFrequency.MONTHLY
    matched = _match_range(_intervals(matches))
    if matched and matched[0] != RecurringFrequency.MONTHLY:
        frequency = matched[0]
    return RecurringProviderCheck(found=True, count=len(matches), frequency=frequency)
