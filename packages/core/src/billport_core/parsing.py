"""Lenient coercion of amounts and dates found in bill records.

Bill data arrives from Firestore documents, bank feeds and email snippets
with inconsistent types. These helpers return None for anything they
cannot interpret so that callers can drop the value instead of failing.
"""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

CENTS = Decimal("0.01")

DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%B %d, %Y",
    "%B %d %Y",
]


def parse_amount(value: Any) -> Optional[Decimal]:
    """Coerce a currency value to Decimal.

    Accepts Decimal, int, float and strings such as "$1,234.50". Booleans,
    NaN, infinities and unparseable strings return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        clean = re.sub(r"[$,\s]", "", value)
        if clean.startswith("(") and clean.endswith(")"):
            clean = "-" + clean[1:-1]
        if not clean:
            return None
        try:
            parsed = Decimal(clean)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def parse_date(value: Any) -> Optional[date]:
    """Coerce a date-like value to a calendar date.

    Datetimes are truncated to their date. Strings are tried as ISO 8601
    first (with or without a time part) and then against DATE_FORMATS.
    Objects exposing ``to_date()`` or ``toDate()`` (Firestore timestamps)
    are converted through that method.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    for attr in ("to_date", "toDate", "to_datetime"):
        converter = getattr(value, attr, None)
        if callable(converter):
            return parse_date(converter())
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def round_cents(value: Decimal) -> Decimal:
    """Round a Decimal half-up to cents."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_half_up(value: float, places: int = 1) -> float:
    """Round a float half-up (away from zero) to the given decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first value under ``keys`` that is neither None nor empty."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def text_or_none(value: Any) -> Optional[str]:
    """Coerce an identifier or free-form tag to a stripped string.

    Strings and integers are kept; lists, mappings and other shapes that
    do not belong in a text field return None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
