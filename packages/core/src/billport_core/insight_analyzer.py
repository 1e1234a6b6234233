"""Per-biller bill insights.

The deterministic analyzer is always available and is the floor every
request falls back to. An optional InsightGenerator (for example the
Anthropic-backed one in llm_insights) may phrase the insight instead when
at least two bills exist; any failure there returns the deterministic
result tagged ``source="deterministic"``.

Thresholds:
- |percent change| < 2: stable
- percent change > 15: spike tip
- (max - min) > 0.3 * average: variability tip
"""

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

import structlog

from billport_core.exceptions import InsightUnavailableError, ValidationError
from billport_core.models.bill import Bill
from billport_core.models.insight import (
    BillerHistoryEntry,
    Insight,
    InsightSource,
    TrendDirection,
)
from billport_core.parsing import (
    first_present,
    parse_amount,
    parse_date,
    round_cents,
    round_half_up,
    text_or_none,
)

logger = structlog.get_logger()

STABLE_THRESHOLD_PERCENT = 2.0
SPIKE_THRESHOLD_PERCENT = 15.0
VARIABILITY_RATIO = Decimal("0.3")
MIN_BILLS_FOR_TREND = 2
RECENT_WINDOW = 3

HistoryItem = Union[BillerHistoryEntry, Bill, Mapping[str, Any]]


def classify_trend(percent_change: Optional[float]) -> TrendDirection:
    """Classify a percent change using the 2% deadband."""
    if percent_change is None:
        return TrendDirection.NOT_ENOUGH_DATA
    if abs(percent_change) < STABLE_THRESHOLD_PERCENT:
        return TrendDirection.STABLE
    if percent_change > 0:
        return TrendDirection.INCREASED
    return TrendDirection.DECREASED


def _coerce_entry(item: HistoryItem) -> Optional[BillerHistoryEntry]:
    if isinstance(item, BillerHistoryEntry):
        return item
    if isinstance(item, Bill):
        return BillerHistoryEntry(
            amount=item.total_amount,
            due_date=item.due_date,
            status=item.status.value,
            category=item.category,
            is_recurring=item.is_recurring,
        )
    if not isinstance(item, Mapping):
        logger.debug("history_entry_skipped", reason="not_a_mapping", item_type=type(item).__name__)
        return None
    raw_amount = first_present(item, "totalAmount", "total_amount", "amount")
    raw_due = first_present(item, "dueDate", "due_date")
    amount = parse_amount(raw_amount)
    due = parse_date(raw_due)
    if amount is None or due is None:
        logger.debug("history_entry_skipped", amount=raw_amount, due_date=raw_due)
        return None
    return BillerHistoryEntry(
        amount=amount,
        due_date=due,
        status=text_or_none(item.get("status")) or "unpaid",
        category=text_or_none(item.get("category")),
        is_recurring=bool(item.get("isRecurring", item.get("is_recurring", False))),
    )


def prepare_history(history: Iterable[HistoryItem]) -> list[BillerHistoryEntry]:
    """Coerce history items and sort them ascending by due date.

    Items without a usable amount or due date are dropped. The sort is
    stable, so bills sharing a due date keep their input order.
    """
    entries = [e for e in (_coerce_entry(item) for item in history) if e is not None]
    return sorted(entries, key=lambda e: e.due_date)


def _money(value: Decimal) -> str:
    return f"${value:.2f}"


def _minimal_insight(entries: Sequence[BillerHistoryEntry], biller_name: str) -> Insight:
    if entries:
        amount = round_cents(entries[0].amount)
        summary = f"You have 1 bill from {biller_name} for {_money(amount)}."
    else:
        amount = Decimal("0.00")
        summary = f"You have no bills from {biller_name} yet."
    return Insight(
        summary=summary,
        trend="Not enough data to determine a trend yet.",
        tips=["Add more bills from this provider to see trends and insights."],
        percent_change=None,
        avg_amount=float(amount),
        min_amount=float(amount),
        max_amount=float(amount),
        source=InsightSource.DETERMINISTIC,
    )


def analyze(history: Iterable[HistoryItem], biller_name: str) -> Insight:
    """Compute the rule-based insight for one biller's bill history.

    Args:
        history: Bills from a single biller, in any order.
        biller_name: Display name used in the generated text.

    Returns:
        An Insight with ``source="deterministic"``.

    Raises:
        ValidationError: If ``biller_name`` is empty.
    """
    if not biller_name or not biller_name.strip():
        raise ValidationError("biller_name is required", field="biller_name")
    biller_name = biller_name.strip()

    entries = prepare_history(history)
    if len(entries) < MIN_BILLS_FOR_TREND:
        return _minimal_insight(entries, biller_name)

    amounts = [e.amount for e in entries]
    count = len(amounts)
    avg = sum(amounts, Decimal("0")) / count
    low = min(amounts)
    high = max(amounts)
    latest = amounts[-1]
    previous = amounts[-2]
    raw_change = float((latest - previous) / previous * 100) if previous > 0 else 0.0

    recent = amounts[-RECENT_WINDOW:]
    recent_avg = sum(recent, Decimal("0")) / len(recent)

    direction = classify_trend(raw_change)
    if direction == TrendDirection.STABLE:
        trend = (
            f"Your {biller_name} bill has been stable. "
            "The latest amount is close to the previous bill."
        )
    elif direction == TrendDirection.INCREASED:
        trend = (
            f"Your {biller_name} bill increased {raw_change:.1f}% "
            f"from {_money(previous)} to {_money(latest)}."
        )
    else:
        trend = (
            f"Your {biller_name} bill decreased {abs(raw_change):.1f}% "
            f"from {_money(previous)} to {_money(latest)}."
        )

    tips: list[str] = []
    if raw_change > SPIKE_THRESHOLD_PERCENT:
        tips.append(
            f"This bill spiked recently. Consider reviewing your usage or plan with {biller_name}."
        )
    if high - low > avg * VARIABILITY_RATIO:
        tips.append("Your bills vary significantly. A fixed-rate plan might help stabilize costs.")
    if any(e.is_recurring for e in entries):
        tips.append("This is a recurring bill. Setting up auto-pay could help avoid late fees.")
    if not tips:
        tips.append("Your spending looks consistent. Keep it up!")

    return Insight(
        summary=(
            f"Over {count} bills, you've spent an average of {_money(avg)}/bill with "
            f"{biller_name}. Recent average (last {RECENT_WINDOW}): {_money(recent_avg)}."
        ),
        trend=trend,
        tips=tips,
        percent_change=round_half_up(raw_change, 1),
        avg_amount=float(round_cents(avg)),
        min_amount=float(round_cents(low)),
        max_amount=float(round_cents(high)),
        source=InsightSource.DETERMINISTIC,
    )


def filter_biller(bills: Iterable[HistoryItem], biller_name: str) -> list[HistoryItem]:
    """Keep the bills whose company matches ``biller_name`` case-insensitively."""
    wanted = biller_name.strip().lower()
    selected = []
    for bill in bills:
        if isinstance(bill, Bill):
            name = bill.biller
        elif isinstance(bill, BillerHistoryEntry):
            selected.append(bill)
            continue
        elif isinstance(bill, Mapping):
            name = text_or_none(first_present(bill, "companyName", "company", "name")) or ""
        else:
            continue
        if name.strip().lower() == wanted:
            selected.append(bill)
    return selected


def analyze_biller(bills: Iterable[HistoryItem], biller_name: str) -> Insight:
    """Analyze the bills of one biller picked out of a mixed list."""
    return analyze(filter_biller(bills, biller_name), biller_name)


@runtime_checkable
class InsightGenerator(Protocol):
    """A generative-text backend that phrases an insight.

    Implementations receive history already sorted by due date and must
    raise InsightUnavailableError for every kind of failure.
    """

    def generate(self, history: Sequence[BillerHistoryEntry], biller_name: str) -> Insight:
        ...


class InsightService:
    """Select between a generative backend and the deterministic analyzer.

    Args:
        generator: Optional generative backend. When None, or when fewer
            than two bills exist, the deterministic analyzer is used.
    """

    def __init__(self, generator: Optional[InsightGenerator] = None):
        self.generator = generator

    @property
    def generative_enabled(self) -> bool:
        return self.generator is not None

    def analyze(self, history: Iterable[HistoryItem], biller_name: str) -> Insight:
        """Return an insight, preferring the generator when it can be used."""
        if not biller_name or not biller_name.strip():
            raise ValidationError("biller_name is required", field="biller_name")

        entries = prepare_history(history)
        if self.generator is not None and len(entries) >= MIN_BILLS_FOR_TREND:
            try:
                insight = self.generator.generate(entries, biller_name.strip())
                return insight.model_copy(update={"source": InsightSource.AI})
            except InsightUnavailableError as e:
                logger.warning(
                    "insight_generation_unavailable",
                    biller=biller_name,
                    error=str(e),
                    details=e.details,
                )
            except Exception as e:
                logger.error(
                    "insight_generator_failed",
                    biller=biller_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return analyze(entries, biller_name)

    def analyze_biller(self, bills: Iterable[HistoryItem], biller_name: str) -> Insight:
        """Analyze one biller's bills picked out of a mixed list."""
        return self.analyze(filter_biller(bills, biller_name), biller_name)
