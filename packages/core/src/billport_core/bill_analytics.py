"""Portfolio-level analytics over a user's bills.

- detect_spike: flags a bill that moved 20% or more against the biller's
  recent bills
- calculate_annual_projections: per-biller yearly cost estimates
- calculate_savings_score: a 0-100 health score with contributing factors
"""

import statistics
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from billport_core.models.bill import Bill, BillingCycle, RecurringFrequency
from billport_core.parsing import round_cents, round_half_up

SPIKE_THRESHOLD_PERCENT = 20
SPIKE_WINDOW = 3
PROJECTION_WINDOW = 3
TREND_DEADBAND_PERCENT = 5
BASE_SCORE = 75


class SpikeType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class SpikeInfo(BaseModel):
    """Outcome of comparing one bill against its biller's history."""

    type: Optional[SpikeType] = Field(default=None, description="None when within 20%")
    percent: int = Field(default=0, ge=0, description="Absolute change, whole percent")
    compared_to: str = Field(
        default="previous",
        description="'average' once 3+ prior bills exist, else 'previous'",
    )


class AnnualProjection(BaseModel):
    biller_name: str
    category: Optional[str] = None
    monthly_avg: Decimal
    annual_estimate: Decimal
    bill_count: int
    trend: str = Field(description="rising, falling or stable")
    trend_percent: int


class ProjectionSummary(BaseModel):
    per_biller: list[AnnualProjection]
    total_annual: Decimal


class FactorImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ScoreFactor(BaseModel):
    label: str
    impact: FactorImpact
    detail: str


class SavingsScore(BaseModel):
    """Bill-health score with the factors that moved it."""

    score: int = Field(ge=0, le=100)
    label: str = Field(description="Optimized, Good, Moderate or Needs Attention")
    factors: list[ScoreFactor] = Field(default_factory=list)


def _biller_key(bill: Bill) -> str:
    return bill.biller.strip().lower()


def _group_by_biller(bills: Iterable[Bill]) -> dict[str, list[Bill]]:
    grouped: dict[str, list[Bill]] = defaultdict(list)
    for bill in bills:
        grouped[_biller_key(bill)].append(bill)
    return grouped


def _mean(values: list[Decimal]) -> Decimal:
    return sum(values, Decimal("0")) / len(values)


def _whole_percent(value: Decimal) -> int:
    return int(round_half_up(float(value), 0))


def detect_spike(bill: Bill, all_bills: Iterable[Bill]) -> SpikeInfo:
    """Compare ``bill`` to the mean of up to three earlier bills of its biller.

    Other bills are matched by biller name case-insensitively; the bill
    itself (same id) is excluded.
    """
    key = _biller_key(bill)
    same_biller = sorted(
        (b for b in all_bills if _biller_key(b) == key and b.id != bill.id),
        key=lambda b: b.due_date,
    )
    if not same_biller:
        return SpikeInfo(compared_to="previous")

    recent = same_biller[-SPIKE_WINDOW:]
    avg = _mean([b.total_amount for b in recent])
    if avg == 0:
        return SpikeInfo(compared_to="average")

    change = (bill.total_amount - avg) / avg * 100
    if abs(change) >= SPIKE_THRESHOLD_PERCENT:
        return SpikeInfo(
            type=SpikeType.INCREASE if change > 0 else SpikeType.DECREASE,
            percent=_whole_percent(abs(change)),
            compared_to="average" if len(same_biller) >= SPIKE_WINDOW else "previous",
        )
    return SpikeInfo(compared_to="average")


def _cycle_multiplier(bill: Bill) -> int:
    if bill.billing_cycle == BillingCycle.BIWEEKLY:
        return 26
    if bill.billing_cycle == BillingCycle.ANNUAL:
        return 1
    if bill.recurring_frequency == RecurringFrequency.QUARTERLY:
        return 4
    if bill.recurring_frequency == RecurringFrequency.ANNUAL:
        return 1
    return 12


def _half_trend(amounts: list[Decimal]) -> tuple[str, Decimal]:
    if len(amounts) < 2:
        return "stable", Decimal("0")
    split = (len(amounts) + 1) // 2
    first_avg = _mean(amounts[:split])
    second_avg = _mean(amounts[split:])
    percent = (second_avg - first_avg) / first_avg * 100 if first_avg > 0 else Decimal("0")
    if percent > TREND_DEADBAND_PERCENT:
        return "rising", percent
    if percent < -TREND_DEADBAND_PERCENT:
        return "falling", percent
    return "stable", percent


def calculate_annual_projections(bills: Iterable[Bill]) -> ProjectionSummary:
    """Estimate each biller's yearly cost from its last three bills.

    The latest bill's billing cycle (or recurrence) picks the multiplier:
    biweekly 26, annual 1, quarterly 4, otherwise 12. Projections are
    sorted by annual estimate, largest first.
    """
    projections = []
    for group in _group_by_biller(bills).values():
        ordered = sorted(group, key=lambda b: b.due_date)
        amounts = [b.total_amount for b in ordered]
        latest = ordered[-1]
        monthly_avg = _mean(amounts[-PROJECTION_WINDOW:])
        trend, trend_percent = _half_trend(amounts)
        projections.append(
            AnnualProjection(
                biller_name=latest.biller,
                category=latest.category,
                monthly_avg=round_cents(monthly_avg),
                annual_estimate=round_cents(monthly_avg * _cycle_multiplier(latest)),
                bill_count=len(ordered),
                trend=trend,
                trend_percent=_whole_percent(trend_percent),
            )
        )

    projections.sort(key=lambda p: p.annual_estimate, reverse=True)
    total = sum((p.annual_estimate for p in projections), Decimal("0"))
    return ProjectionSummary(per_biller=projections, total_annual=round_cents(total))


def _score_label(score: int) -> str:
    if score >= 80:
        return "Optimized"
    if score >= 65:
        return "Good"
    if score >= 45:
        return "Moderate"
    return "Needs Attention"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def _count_spikes(bills: list[Bill]) -> int:
    spikes = 0
    for group in _group_by_biller(bills).values():
        if len(group) < 2:
            continue
        amounts = [b.total_amount for b in group]
        avg = _mean(amounts)
        spikes += sum(1 for amount in amounts if abs(amount - avg) > avg * Decimal("0.2"))
    return spikes


def calculate_savings_score(
    bills: Iterable[Bill],
    now: Optional[Union[date, datetime]] = None,
) -> SavingsScore:
    """Score how well a set of bills is being managed.

    Starts from 75 and adjusts for amount spikes, the share of recurring
    and paid bills, overdue bills and overall amount variability. The
    result is clamped to 0..100.
    """
    bills = list(bills)
    if not bills:
        return SavingsScore(
            score=50,
            label="Moderate",
            factors=[
                ScoreFactor(
                    label="No bills",
                    impact=FactorImpact.NEUTRAL,
                    detail="Add bills to get a personalized score.",
                )
            ],
        )

    if now is None:
        today = date.today()
    else:
        today = now.date() if isinstance(now, datetime) else now

    score = BASE_SCORE
    factors: list[ScoreFactor] = []
    total = len(bills)

    spikes = _count_spikes(bills)
    if spikes == 0:
        score += 10
        factors.append(
            ScoreFactor(
                label="Stable spending",
                impact=FactorImpact.POSITIVE,
                detail="No unusual bill spikes detected.",
            )
        )
    elif spikes <= 2:
        score -= 5
        factors.append(
            ScoreFactor(
                label="Minor spikes",
                impact=FactorImpact.NEGATIVE,
                detail=f"{_plural(spikes, 'bill amount spike')} detected.",
            )
        )
    else:
        score -= 10
        factors.append(
            ScoreFactor(
                label="Frequent spikes",
                impact=FactorImpact.NEGATIVE,
                detail=f"{spikes} bill spikes detected. Review your plans.",
            )
        )

    recurring = sum(1 for b in bills if b.is_recurring)
    if recurring * 100 / total >= 60:
        score += 5
        factors.append(
            ScoreFactor(
                label="Well-tracked recurring",
                impact=FactorImpact.POSITIVE,
                detail=f"{recurring} of {total} bills are recurring and tracked.",
            )
        )

    paid_pct = sum(1 for b in bills if b.is_paid) * 100 / total
    shown_pct = int(round_half_up(paid_pct, 0))
    if paid_pct >= 80:
        score += 10
        factors.append(
            ScoreFactor(
                label="Great payment record",
                impact=FactorImpact.POSITIVE,
                detail=f"{shown_pct}% of bills are paid on time.",
            )
        )
    elif paid_pct >= 50:
        factors.append(
            ScoreFactor(
                label="Moderate payment record",
                impact=FactorImpact.NEUTRAL,
                detail=f"{shown_pct}% of bills are paid.",
            )
        )
    else:
        score -= 10
        factors.append(
            ScoreFactor(
                label="Unpaid bills",
                impact=FactorImpact.NEGATIVE,
                detail=f"Only {shown_pct}% of bills are paid. Prioritize overdue bills.",
            )
        )

    unpaid = [b for b in bills if not b.is_paid]
    overdue = [b for b in unpaid if b.due_date < today]
    if overdue:
        score -= 5 * len(overdue)
        factors.append(
            ScoreFactor(
                label="Overdue bills",
                impact=FactorImpact.NEGATIVE,
                detail=(
                    f"{_plural(len(overdue), 'overdue bill')}. "
                    "Pay these first to avoid late fees."
                ),
            )
        )
    elif unpaid:
        score += 5
        factors.append(
            ScoreFactor(
                label="No overdue bills",
                impact=FactorImpact.POSITIVE,
                detail="All unpaid bills are still within their due dates.",
            )
        )

    amounts = [b.total_amount for b in bills]
    avg = _mean(amounts)
    variation = statistics.pstdev(amounts) / avg * 100 if avg > 0 else Decimal("0")
    if variation < 30:
        score += 5
        factors.append(
            ScoreFactor(
                label="Predictable bills",
                impact=FactorImpact.POSITIVE,
                detail="Your bill amounts are consistent and predictable.",
            )
        )
    elif variation > 60:
        score -= 5
        factors.append(
            ScoreFactor(
                label="Variable bills",
                impact=FactorImpact.NEGATIVE,
                detail="Large variation in bill amounts. Consider fixed-rate plans.",
            )
        )

    score = max(0, min(100, score))
    return SavingsScore(score=score, label=_score_label(score), factors=factors)
