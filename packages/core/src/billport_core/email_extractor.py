"""
Heuristic bill detection from email metadata.

Scores an email's sender, subject and snippet for bill likelihood and pulls
out the biller, the first dollar amount and the due date. Only the metadata
the mail provider returns with a message listing is used; bodies are never
fetched here.
"""

import re
from typing import Any, Iterable, Mapping, Optional

import structlog

from billport_core.categories import categorize_text
from billport_core.models.detection import EmailBillCandidate, EmailBillInfo, PendingBill
from billport_core.parsing import parse_date
from billport_core.providers import fuzzy_match_provider
from billport_core.recurring_detector import confidence_band

logger = structlog.get_logger()

BILL_KEYWORDS = [
    "invoice", "bill", "payment due", "amount due", "statement",
    "utility", "hydro", "electricity", "gas", "water",
    "internet", "phone", "mobile", "wireless", "cable",
    "insurance", "mortgage", "rent", "lease",
    "subscription", "membership", "renewal",
    "credit card", "bank statement",
    "rogers", "bell", "telus", "shaw", "fido", "koodo", "virgin",
    "enbridge", "hydro one", "toronto hydro", "bc hydro",
    "netflix", "spotify", "amazon prime", "disney+",
    "td bank", "rbc", "scotiabank", "bmo", "cibc",
]

BILL_SENDERS = [
    "noreply", "billing", "invoice", "payment", "statement",
    "customerservice", "support", "notifications",
]

# Search query sent to the mail provider; the first ten keywords only.
SEARCH_QUERY = " OR ".join(f'"{k}"' for k in BILL_KEYWORDS[:10])

KEYWORD_WEIGHT = 0.1
SENDER_WEIGHT = 0.15
AMOUNT_WEIGHT = 0.2
DUE_DATE_WEIGHT = 0.1
MIN_PLAUSIBLE_AMOUNT = 5
MAX_PLAUSIBLE_AMOUNT = 10000
DEFAULT_MIN_CONFIDENCE = 0.3

AMOUNT_PATTERN = re.compile(r"\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)")

DUE_DATE_PATTERNS = [
    re.compile(r"due\s*(?:date|by|on)?:?\s*(\w+\s+\d{1,2},?\s*\d{4})", re.IGNORECASE),
    re.compile(r"payment\s+due:?\s*(\w+\s+\d{1,2},?\s*\d{4})", re.IGNORECASE),
    re.compile(r"(\d{1,2}/\d{1,2}/\d{2,4})"),
]


def extract_company_name(from_header: str) -> str:
    """Derive the biller name from a From header.

    Uses the display name when there is one, otherwise the capitalized
    second-level domain of the address.
    """
    address_match = re.search(r"<([^>]+)>", from_header)
    address = address_match.group(1) if address_match else from_header

    name_match = re.match(r"^([^<]+)", from_header)
    if name_match and name_match.group(1).strip() and "@" not in name_match.group(1):
        return name_match.group(1).strip().replace('"', "")

    if "@" in address:
        parts = address.split("@", 1)[1].strip().split(".")
        if len(parts) >= 2 and parts[-2]:
            label = parts[-2]
            return label[0].upper() + label[1:]

    return "Unknown"


def _first_amount(text: str) -> Optional[float]:
    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def _first_due_date(text: str) -> Optional[str]:
    for pattern in DUE_DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_bill_info(from_header: str, subject: str, snippet: str) -> EmailBillInfo:
    """Score one email and extract its bill fields.

    Args:
        from_header: Raw From header, e.g. ``Rogers <billing@rogers.com>``.
        subject: Subject line.
        snippet: Short body preview.

    Returns:
        EmailBillInfo with confidence capped at 1.0 and rounded to 2 places.
    """
    combined = f"{from_header} {subject} {snippet}"
    text = combined.lower()
    sender = from_header.lower()

    confidence = 0.0
    for keyword in BILL_KEYWORDS:
        if keyword in text:
            confidence += KEYWORD_WEIGHT
    for token in BILL_SENDERS:
        if token in sender:
            confidence += SENDER_WEIGHT

    amount = _first_amount(text)
    if amount is not None and MIN_PLAUSIBLE_AMOUNT < amount < MAX_PLAUSIBLE_AMOUNT:
        confidence += AMOUNT_WEIGHT

    due_date = _first_due_date(combined)
    if due_date is not None:
        confidence += DUE_DATE_WEIGHT

    return EmailBillInfo(
        company=extract_company_name(from_header),
        amount=amount,
        due_date=due_date,
        category=categorize_text(text),
        confidence=round(min(confidence, 1.0), 2),
    )


def _header(headers: Iterable[Mapping[str, Any]], name: str) -> str:
    for header in headers:
        if str(header.get("name", "")).lower() == name.lower():
            return str(header.get("value") or "")
    return ""


def _message_fields(message: Mapping[str, Any]) -> dict[str, str]:
    """Flatten either a plain metadata mapping or a Gmail API message."""
    message_id = message.get("id")
    if not message_id:
        raise KeyError("id")

    payload = message.get("payload")
    if isinstance(payload, Mapping):
        headers = payload.get("headers") or []
        return {
            "id": str(message_id),
            "from": _header(headers, "From"),
            "subject": _header(headers, "Subject"),
            "date": _header(headers, "Date"),
            "snippet": str(message.get("snippet") or ""),
        }

    return {
        "id": str(message_id),
        "from": str(message.get("from") or message.get("from_") or ""),
        "subject": str(message.get("subject") or ""),
        "date": str(message.get("date") or ""),
        "snippet": str(message.get("snippet") or ""),
    }


def scan_messages(
    messages: Iterable[Mapping[str, Any]],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> list[EmailBillCandidate]:
    """Run the extractor over message metadata and keep likely bills.

    Candidates must score strictly above ``min_confidence``. Messages
    without an id or with malformed headers are logged and skipped.

    Returns:
        Candidates sorted by descending confidence.
    """
    candidates: list[EmailBillCandidate] = []
    skipped = 0
    for message in messages:
        try:
            fields = _message_fields(message)
        except (KeyError, AttributeError, TypeError) as e:
            skipped += 1
            logger.warning("email_message_skipped", error=str(e), error_type=type(e).__name__)
            continue

        info = extract_bill_info(fields["from"], fields["subject"], fields["snippet"])
        if info.confidence > min_confidence:
            candidates.append(EmailBillCandidate(**fields, **info.model_dump()))

    candidates.sort(key=lambda c: c.confidence, reverse=True)
    logger.info("email_scan_completed", candidates=len(candidates), skipped=skipped)
    return candidates


def to_pending_bill(candidate: EmailBillCandidate, user_id: str) -> PendingBill:
    """Map a detected email bill to the record the user reviews."""
    match = fuzzy_match_provider(candidate.company)
    return PendingBill(
        user_id=user_id,
        gmail_message_id=candidate.id,
        merchant_name=match.provider_name if match else candidate.company,
        amount=candidate.amount,
        due_date=parse_date(candidate.due_date) if candidate.due_date else None,
        confidence=confidence_band(candidate.confidence),
        raw_email_snippet=candidate.snippet,
        email_subject=candidate.subject,
        email_from=candidate.from_,
        email_date=candidate.date,
        category=match.category if match else candidate.category.value,
        matched_provider_id=match.provider_id if match else None,
        matched_provider_name=match.provider_name if match else None,
    )
