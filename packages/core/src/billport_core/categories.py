"""Bill categories and keyword-based categorization.

The keyword table is ordered: categorize_text returns the first category
whose keyword list matches, so overlapping keywords resolve by position
("cable" is claimed by internet before subscription is considered).
"""

from enum import Enum


class BillCategory(str, Enum):
    """Categories assigned to detected bills."""

    UTILITIES = "utilities"
    PHONE = "phone"
    INTERNET = "internet"
    INSURANCE = "insurance"
    SUBSCRIPTION = "subscription"
    CREDIT_CARD = "credit-card"
    BANKING = "banking"
    HOUSING = "housing"
    OTHER = "other"


# Order matters, see module docstring.
CATEGORY_KEYWORDS: list[tuple[BillCategory, list[str]]] = [
    (BillCategory.UTILITIES, ["hydro", "electricity", "gas", "water", "utility", "enbridge"]),
    (
        BillCategory.PHONE,
        ["phone", "mobile", "wireless", "rogers", "bell", "telus", "fido", "koodo", "virgin"],
    ),
    (BillCategory.INTERNET, ["internet", "wifi", "broadband", "shaw", "cable"]),
    (BillCategory.INSURANCE, ["insurance", "coverage", "policy", "premium"]),
    (
        BillCategory.SUBSCRIPTION,
        ["subscription", "netflix", "spotify", "amazon", "disney", "membership"],
    ),
    (BillCategory.CREDIT_CARD, ["credit card", "visa", "mastercard", "amex"]),
    (BillCategory.BANKING, ["bank", "td", "rbc", "scotiabank", "bmo", "cibc", "mortgage"]),
    (BillCategory.HOUSING, ["rent", "lease", "property", "condo"]),
]


def categorize_text(text: str) -> BillCategory:
    """Return the first category whose keywords appear in ``text``.

    Matching is a case-insensitive substring test. Returns OTHER when
    nothing matches.
    """
    lowered = text.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if keyword in lowered:
                return category
    return BillCategory.OTHER
