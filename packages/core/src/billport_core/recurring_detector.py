"""Recurring-bill detection from bank transactions.

Transactions are grouped by merchant, the median gap between charges is
matched to a frequency bucket and each qualifying group gets a confidence
score built from three signals:

- occurrence: min(n / 6, 1)
- amount consistency: max(0, 1 - coefficient of variation of the amounts)
- interval regularity: max(0, 1 - mean |gap - interval| / (2 * tolerance))

confidence = 0.3 * occurrence + 0.35 * amount + 0.35 * regularity
"""

import re
import statistics
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

import structlog
from dateutil.relativedelta import relativedelta

from billport_core.categories import categorize_text
from billport_core.exceptions import ValidationError
from billport_core.models.bill import RecurringFrequency
from billport_core.models.detection import RecurringBillCandidate, TransactionRecord
from billport_core.parsing import parse_amount, parse_date, round_cents

logger = structlog.get_logger()


@dataclass(frozen=True)
class FrequencyBucket:
    """Canonical interval of a frequency and the gap tolerance around it."""

    frequency: RecurringFrequency
    interval_days: int
    tolerance_days: int


FREQUENCY_BUCKETS: list[FrequencyBucket] = [
    FrequencyBucket(RecurringFrequency.WEEKLY, 7, 3),
    FrequencyBucket(RecurringFrequency.BIWEEKLY, 14, 3),
    FrequencyBucket(RecurringFrequency.MONTHLY, 30, 5),
    FrequencyBucket(RecurringFrequency.QUARTERLY, 91, 10),
    FrequencyBucket(RecurringFrequency.ANNUAL, 365, 15),
]

MIN_OCCURRENCES = 2
FULL_OCCURRENCE_COUNT = 6

OCCURRENCE_WEIGHT = 0.3
AMOUNT_WEIGHT = 0.35
REGULARITY_WEIGHT = 0.35

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.6


def normalize_merchant(name: str) -> str:
    """Grouping key for a merchant: lower-cased with whitespace collapsed."""
    return re.sub(r"\s+", " ", name).strip().lower()


def match_frequency(gap_days: float) -> Optional[FrequencyBucket]:
    """Return the nearest bucket whose tolerance contains ``gap_days``."""
    best: Optional[FrequencyBucket] = None
    best_distance = float("inf")
    for bucket in FREQUENCY_BUCKETS:
        distance = abs(gap_days - bucket.interval_days)
        if distance <= bucket.tolerance_days and distance < best_distance:
            best = bucket
            best_distance = distance
    return best


def get_next_due_date(
    last_date: date, frequency: Union[RecurringFrequency, str]
) -> date:
    """Project the next charge date from the last one.

    Weekly and bi-weekly add 7 and 14 days. Monthly, quarterly and annual
    use calendar arithmetic with the day clamped to the end of the target
    month, so Jan 31 + 1 month is Feb 28 (or 29) and Feb 29 + 1 year is
    Feb 28.

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

    if freq == RecurringFrequency.WEEKLY:
        return last_date + timedelta(days=7)
    if freq == RecurringFrequency.BIWEEKLY:
        return last_date + timedelta(days=14)
    if freq == RecurringFrequency.MONTHLY:
        return last_date + relativedelta(months=1)
    if freq == RecurringFrequency.QUARTERLY:
        return last_date + relativedelta(months=3)
    return last_date + relativedelta(years=1)


def confidence_band(confidence: float) -> str:
    """Label a confidence score as high, medium or low for display."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def _category_hint(value: Any) -> Optional[str]:
    """Reduce a bank-feed category (string, list or Plaid-style dict) to a string."""
    if isinstance(value, Mapping):
        value = value.get("primary") or value.get("detailed")
    elif isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_record(raw: Any) -> Optional[TransactionRecord]:
    if isinstance(raw, TransactionRecord):
        return raw
    if not isinstance(raw, Mapping):
        logger.debug("transaction_skipped", reason="not_a_mapping", record_type=type(raw).__name__)
        return None
    merchant = raw.get("merchant") or raw.get("merchant_name") or raw.get("name")
    amount = parse_amount(raw.get("amount"))
    posted = parse_date(raw.get("date"))
    if not isinstance(merchant, str) or not merchant.strip() or amount is None or posted is None:
        logger.debug(
            "transaction_skipped",
            merchant=merchant,
            amount=raw.get("amount"),
            date=raw.get("date"),
        )
        return None
    return TransactionRecord(
        merchant=merchant.strip(),
        amount=amount,
        date=posted,
        category=_category_hint(raw.get("category")),
    )


def _amount_consistency(amounts: list[Decimal]) -> float:
    values = [float(a) for a in amounts]
    mean = statistics.fmean(values)
    if mean <= 0:
        return 0.0
    cv = statistics.pstdev(values) / mean
    return max(0.0, 1.0 - cv)


def _interval_regularity(gaps: list[int], bucket: FrequencyBucket) -> float:
    deviation = statistics.fmean(abs(g - bucket.interval_days) for g in gaps)
    return max(0.0, 1.0 - deviation / (2 * bucket.tolerance_days))


class RecurringBillDetector:
    """Detect recurring bills in a list of transactions.

    Args:
        window_days: When set, only transactions within this many days of
            the newest transaction are analyzed.
    """

    def __init__(self, window_days: Optional[int] = None):
        if window_days is not None and window_days <= 0:
            raise ValidationError(
                "window_days must be positive",
                field="window_days",
                value=window_days,
            )
        self.window_days = window_days

    def detect(
        self, transactions: Iterable[Union[TransactionRecord, Mapping[str, Any]]]
    ) -> list[RecurringBillCandidate]:
        """Return recurring-bill candidates sorted by descending confidence."""
        records = [r for r in (_coerce_record(t) for t in transactions) if r is not None]
        if not records:
            return []

        if self.window_days is not None:
            newest = max(r.date for r in records)
            cutoff = newest - timedelta(days=self.window_days)
            records = [r for r in records if r.date >= cutoff]

        groups: dict[str, list[TransactionRecord]] = defaultdict(list)
        for record in records:
            groups[normalize_merchant(record.merchant)].append(record)

        candidates = []
        for group in groups.values():
            candidate = self._evaluate_group(group)
            if candidate is not None:
                candidates.append(candidate)

        candidates.sort(key=lambda c: (-c.confidence, c.merchant.lower()))
        logger.info(
            "recurring_detection_complete",
            transactions=len(records),
            merchants=len(groups),
            candidates=len(candidates),
        )
        return candidates

    def _evaluate_group(self, group: list[TransactionRecord]) -> Optional[RecurringBillCandidate]:
        if len(group) < MIN_OCCURRENCES:
            return None

        ordered = sorted(group, key=lambda r: r.date)
        gaps = [(b.date - a.date).days for a, b in zip(ordered, ordered[1:])]
        bucket = match_frequency(statistics.median(gaps))
        if bucket is None:
            logger.debug("irregular_merchant", merchant=ordered[-1].merchant, gaps=gaps)
            return None

        amounts = [abs(r.amount) for r in ordered]
        occurrence = min(len(ordered) / FULL_OCCURRENCE_COUNT, 1.0)
        confidence = (
            OCCURRENCE_WEIGHT * occurrence
            + AMOUNT_WEIGHT * _amount_consistency(amounts)
            + REGULARITY_WEIGHT * _interval_regularity(gaps, bucket)
        )

        last = ordered[-1]
        return RecurringBillCandidate(
            merchant=last.merchant,
            category=self._category_for(ordered),
            average_amount=round_cents(sum(amounts, Decimal("0")) / len(amounts)),
            frequency=bucket.frequency,
            occurrences=len(ordered),
            last_date=last.date,
            next_due_date=get_next_due_date(last.date, bucket.frequency),
            confidence=round(min(max(confidence, 0.0), 1.0), 2),
        )

    @staticmethod
    def _category_for(group: list[TransactionRecord]) -> str:
        hints = Counter(r.category for r in group if r.category)
        if hints:
            return hints.most_common(1)[0][0]
        return categorize_text(group[-1].merchant).value


def detect_recurring(
    transactions: Iterable[Union[TransactionRecord, Mapping[str, Any]]],
    *,
    window_days: Optional[int] = None,
) -> list[RecurringBillCandidate]:
    """Detect recurring bills; see RecurringBillDetector."""
    return RecurringBillDetector(window_days=window_days).detect(transactions)
