"""Checks applied to bill data extracted from scans before it is saved.

Covers duplicate detection against existing bills, amount and due-date
sanitizing, and recently-seen file tracking.
"""

import hashlib
import re
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import structlog
from dateutil.relativedelta import relativedelta

from billport_core.models.bill import Bill
from billport_core.parsing import parse_amount, parse_date, round_cents
from billport_core.rate_limit import Clock, TTLStore

logger = structlog.get_logger()

DUPLICATE_THRESHOLD = 0.6
NAME_WEIGHT = 0.4
EXACT_AMOUNT_WEIGHT = 0.35
SIMILAR_AMOUNT_WEIGHT = 0.2
SAME_DATE_WEIGHT = 0.25
NEAR_DATE_WEIGHT = 0.1
SIMILAR_AMOUNT_RATIO = Decimal("0.02")
NEAR_DATE_DAYS = 3

MAX_PLAUSIBLE_AMOUNT = Decimal("100000")
MIN_PLAUSIBLE_AMOUNT = Decimal("0.01")

FILE_HASH_TTL_SECONDS = 3600

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$")


@dataclass(frozen=True)
class ExtractedBill:
    """Fields pulled from a scanned bill."""

    vendor: str
    amount: Optional[Decimal] = None
    due_date: Optional[date] = None


@dataclass(frozen=True)
class DuplicateCheckResult:
    is_duplicate: bool
    match_score: float = 0.0
    matched_bill_id: Optional[str] = None
    matched_bill_name: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class ExtractionValidation:
    """Sanitized values plus the problems found while sanitizing."""

    amount: Optional[Decimal]
    due_date: Optional[str]
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _names_match(vendor: str, bill: Bill, provider_id: Optional[str]) -> bool:
    if provider_id and bill.provider_id:
        return provider_id == bill.provider_id
    a = vendor.strip().lower()
    b = bill.biller.strip().lower()
    return a == b or a in b or b in a


def check_for_duplicate(
    extracted: ExtractedBill,
    existing_bills: Iterable[Bill],
    provider_id: Optional[str] = None,
) -> DuplicateCheckResult:
    """Look for an existing bill that the extracted one likely duplicates.

    Each bill is scored on provider/name match (0.4), amount (0.35 exact,
    0.2 within 2%) and due date (0.25 same day, 0.1 within 3 days). The
    first bill scoring 0.6 or more is reported.
    """
    for bill in existing_bills:
        score = 0.0
        reasons: list[str] = []

        if _names_match(extracted.vendor, bill, provider_id):
            score += NAME_WEIGHT
            reasons.append("same provider")

        if extracted.amount is not None:
            diff = abs(extracted.amount - bill.total_amount)
            larger = max(extracted.amount, bill.total_amount)
            if diff < MIN_PLAUSIBLE_AMOUNT:
                score += EXACT_AMOUNT_WEIGHT
                reasons.append("same amount")
            elif larger > 0 and diff / larger < SIMILAR_AMOUNT_RATIO:
                score += SIMILAR_AMOUNT_WEIGHT
                reasons.append("similar amount")

        if extracted.due_date is not None:
            days = abs((extracted.due_date - bill.due_date).days)
            if days == 0:
                score += SAME_DATE_WEIGHT
                reasons.append("same due date")
            elif days <= NEAR_DATE_DAYS:
                score += NEAR_DATE_WEIGHT
                reasons.append("similar due date")

        score = round(score, 2)
        if score >= DUPLICATE_THRESHOLD:
            logger.info("duplicate_bill_detected", bill_id=bill.id, score=score)
            return DuplicateCheckResult(
                is_duplicate=True,
                match_score=score,
                matched_bill_id=bill.id,
                matched_bill_name=bill.biller,
                reason=f"Possible duplicate: {', '.join(reasons)}",
            )

    return DuplicateCheckResult(is_duplicate=False)


def normalize_date_text(text: str) -> Optional[str]:
    """Convert a date string to ISO ``YYYY-MM-DD``.

    Numeric dates are read as D/M/Y first and as M/D/Y when the first
    reading is impossible; anything else goes through parse_date.
    """
    text = text.strip()
    numeric = _NUMERIC_DATE.match(text)
    if numeric:
        first, second, year = (int(g) for g in numeric.groups())
        for day, month in ((first, second), (second, first)):
            try:
                return date(year, month, day).isoformat()
            except ValueError:
                continue
        return None
    parsed = parse_date(text)
    return parsed.isoformat() if parsed else None


def _sanitize_amount(value: Any, warnings: list[str], errors: list[str]) -> Optional[Decimal]:
    if value is None:
        return None
    amount = parse_amount(value)
    if amount is None:
        errors.append("Extracted amount is not a valid number")
        return None

    if amount < 0:
        warnings.append("Negative amount detected, converted to positive")
        amount = abs(amount)
    elif amount > MAX_PLAUSIBLE_AMOUNT:
        warnings.append("Amount over $100,000, please verify")
    elif amount < MIN_PLAUSIBLE_AMOUNT:
        warnings.append("Amount is less than $0.01, please verify")
    return round_cents(amount)


def _sanitize_due_date(
    value: Union[str, date, None],
    today: date,
    warnings: list[str],
    errors: list[str],
) -> Optional[str]:
    if not value:
        return None

    if isinstance(value, date):
        iso = value.isoformat()
    elif _ISO_DATE.match(value.strip()):
        iso = value.strip()
    else:
        iso = normalize_date_text(value)
        if iso is None:
            errors.append("Could not parse the extracted date")
            return None
        warnings.append(f"Date format corrected to {iso}")

    parsed = parse_date(iso)
    if parsed is None:
        errors.append("Extracted date is invalid")
        return None

    if parsed < today - relativedelta(years=1):
        warnings.append("Due date is more than 1 year in the past, please verify")
    if parsed > today + relativedelta(years=2):
        warnings.append("Due date is more than 2 years in the future, please verify")
    return iso


def validate_and_sanitize_extraction(
    amount: Any,
    due_date: Union[str, date, None],
    today: Optional[date] = None,
) -> ExtractionValidation:
    """Clean up an extracted amount and due date.

    Amounts are made positive and rounded to cents; non-numeric amounts
    are errors. Dates are normalized to ISO; unparseable dates are errors
    and dates outside [today - 1y, today + 2y] produce warnings.
    """
    today = today or date.today()
    warnings: list[str] = []
    errors: list[str] = []
    result = ExtractionValidation(
        amount=_sanitize_amount(amount, warnings, errors),
        due_date=_sanitize_due_date(due_date, today, warnings, errors),
        warnings=warnings,
        errors=errors,
    )
    if errors:
        logger.warning("extraction_validation_failed", errors=errors)
    return result


def content_hash(data: Union[str, bytes]) -> str:
    """Stable fingerprint of uploaded file content."""
    raw = data.encode("utf-8") if isinstance(data, str) else data
    return hashlib.sha256(raw).hexdigest()


class FileHashRegistry:
    """Remembers which files each user uploaded within the last hour."""

    def __init__(self, ttl_seconds: float = FILE_HASH_TTL_SECONDS, clock: Clock = time.monotonic):
        self._seen: TTLStore[bool] = TTLStore(ttl_seconds, clock=clock)

    def check_and_record(self, user_id: str, file_hash: str) -> bool:
        """Return True when the user already sent this file recently.

        A file seen for the first time is recorded and False is returned.
        """
        key = f"{user_id}:{file_hash}"
        if key in self._seen:
            return True
        self._seen.set(key, True)
        return False
