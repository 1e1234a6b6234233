"""Tests for recurrence detection over stored bills."""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from billport_core.bill_patterns import (
    apply_recurring_detection,
    bill_group_key,
    check_for_recurring_provider,
    confirm_recurring,
    detect_bill_patterns,
    dismiss_amount_alert,
)
from billport_core.exceptions import ValidationError
from billport_core.models import Bill, RecurringFrequency


def bill(
    bill_id: Optional[str],
    due: date,
    amount: str = "120",
    company: str = "Hydro One",
    provider_id: Optional[str] = None,
) -> Bill:
    return Bill(
        id=bill_id,
        company=company,
        total_amount=Decimal(amount),
        due_date=due,
        provider_id=provider_id,
    )


def monthly(amounts: list[str]) -> list[Bill]:
    return [
        bill(f"ho{i}", date(2025, 3 + i, 15), amount)
        for i, amount in enumerate(amounts)
    ]


class TestDetectBillPatterns:
    """Test suite for detect_bill_patterns."""

    def test_steady_monthly_biller(self):
        """Five monthly bills of the same amount are recurring at full confidence."""
        detections = detect_bill_patterns(monthly(["120"] * 5))

        assert len(detections) == 5
        latest = detections["ho4"]
        assert latest.is_recurring
        assert latest.frequency == RecurringFrequency.MONTHLY
        assert latest.confidence == 1.0
        assert latest.avg_amount == Decimal("120.00")
        assert latest.deviation_percent == 0.0
        assert latest.deviation_flag is False

    def test_confidence_scales_with_history(self):
        """Two bills score 0.4 and stay below the threshold; three reach 0.6."""
        two = detect_bill_patterns(monthly(["120"] * 2))["ho1"]
        three = detect_bill_patterns(monthly(["120"] * 3))["ho2"]

        assert two.confidence == 0.4
        assert not two.is_recurring
        assert three.confidence == 0.6
        assert three.is_recurring

    def test_percentage_deviation_flags_latest_bill(self):
        """150 against a recent average of 116.67 is flagged on the newest bill only."""
        detections = detect_bill_patterns(monthly(["100", "100", "100", "150"]))

        latest = detections["ho3"]
        assert latest.confidence == 0.8
        assert latest.avg_amount == Decimal("116.67")
        assert latest.deviation_percent == 28.6
        assert latest.deviation_flag is True
        assert not any(detections[f"ho{i}"].deviation_flag for i in range(3))

    def test_dollar_deviation_on_large_bill(self):
        """A $13 jump on a $500 bill is flagged even though it is under 15%."""
        detections = detect_bill_patterns(monthly(["500", "500", "520"]))
        assert detections["ho2"].deviation_flag is True

    def test_small_change_not_flagged(self):
        detections = detect_bill_patterns(monthly(["120", "118", "124"]))
        assert detections["ho2"].deviation_flag is False

    def test_irregular_gaps_are_not_recurring(self):
        """A 73-day gap matches no frequency range."""
        detections = detect_bill_patterns(
            [bill("a", date(2025, 1, 1)), bill("b", date(2025, 3, 15), "200")]
        )

        assert detections["b"].is_recurring is False
        assert detections["b"].frequency is None
        assert detections["b"].confidence == 0.0
        assert detections["b"].deviation_flag is False

    def test_quarterly_and_annual_ranges(self):
        quarter_dates = [date(2024, 1, 10), date(2024, 4, 10), date(2024, 7, 10), date(2024, 10, 10)]
        quarterly = [bill(f"q{i}", d) for i, d in enumerate(quarter_dates)]
        annual = [bill(f"y{i}", date(2021 + i, 6, 1), company="City Tax") for i in range(5)]

        detections = detect_bill_patterns(quarterly + annual)

        assert detections["q3"].frequency == RecurringFrequency.QUARTERLY
        assert detections["y4"].frequency == RecurringFrequency.ANNUAL
        assert detections["y4"].confidence == 1.0

    def test_lone_bill(self):
        [detection] = detect_bill_patterns([bill("solo", date(2025, 8, 1), "42.50")]).values()

        assert detection.is_recurring is False
        assert detection.confidence == 0.0
        assert detection.avg_amount == Decimal("42.50")

    def test_grouped_by_provider_then_name(self):
        """A shared provider id groups bills despite differing names."""
        bills = [
            bill("a", date(2025, 5, 15), company="Rogers", provider_id="rogers"),
            bill("b", date(2025, 6, 15), company="Rogers Wireless", provider_id="rogers"),
            bill("c", date(2025, 7, 15), company="ROGERS", provider_id="rogers"),
            bill("d", date(2025, 7, 20), company="hydro one "),
            bill("e", date(2025, 8, 20), company="Hydro One", provider_id="unknown"),
        ]

        detections = detect_bill_patterns(bills)

        assert detections["c"].confidence == 0.6
        assert detections["e"].confidence == 0.4
        assert bill_group_key(bills[1]) == "rogers"
        assert bill_group_key(bills[4]) == "hydro one"

    def test_bills_without_id_have_no_entry(self):
        bills = monthly(["120"] * 3) + [bill(None, date(2025, 6, 15))]
        assert set(detect_bill_patterns(bills)) == {"ho0", "ho1", "ho2"}

    def test_empty(self):
        assert detect_bill_patterns([]) == {}


class TestApplyRecurringDetection:
    """Test suite for apply_recurring_detection."""

    def test_fields_are_updated(self):
        updated = apply_recurring_detection(monthly(["100", "100", "100", "150"]))

        latest = updated[-1]
        assert latest.is_recurring
        assert latest.recurring_frequency == RecurringFrequency.MONTHLY
        assert latest.recurring_confidence == 0.8
        assert latest.avg_recurring_amount == Decimal("116.67")
        assert latest.amount_deviation_percent == 28.6
        assert latest.amount_deviation_flag is True
        assert [b.id for b in updated] == ["ho0", "ho1", "ho2", "ho3"]

    def test_confirmed_bill_stays_recurring(self):
        """A user-confirmed bill keeps its recurrence whatever the detector finds."""
        confirmed = confirm_recurring(bill("a", date(2025, 1, 1)), "quarterly")
        bills = [confirmed, bill("b", date(2025, 3, 15))]

        first, second = apply_recurring_detection(bills)

        assert first.is_recurring is True
        assert first.recurring_frequency == RecurringFrequency.QUARTERLY
        assert first.recurring_confidence == 1.0
        assert second.is_recurring is False

    def test_dismissed_alert_stays_dismissed(self):
        bills = monthly(["100", "100", "100", "150"])
        bills[-1] = dismiss_amount_alert(bills[-1])

        latest = apply_recurring_detection(bills)[-1]

        assert latest.amount_deviation_flag is False
        assert latest.amount_alert_dismissed is True
        assert latest.avg_recurring_amount == Decimal("116.67")

    def test_input_bills_unchanged(self):
        bills = monthly(["120"] * 3)
        apply_recurring_detection(bills)
        assert all(b.recurring_confidence is None for b in bills)


class TestConfirmRecurring:
    """Test suite for confirm_recurring."""

    def test_aliases_accepted(self):
        confirmed = confirm_recurring(bill("a", date(2025, 8, 1)), "yearly")
        assert confirmed.recurring_frequency == RecurringFrequency.ANNUAL
        assert confirmed.recurring_confidence == 1.0

    def test_unknown_frequency(self):
        with pytest.raises(ValidationError) as exc_info:
            confirm_recurring(bill("a", date(2025, 8, 1)), "whenever")
        assert exc_info.value.field == "frequency"


class TestCheckForRecurringProvider:
    """Test suite for check_for_recurring_provider."""

    def test_no_existing_bills(self):
        result = check_for_recurring_provider(monthly(["120"] * 3), "Bell")
        assert result.found is False
        assert result.count == 0
        assert result.frequency is None

    def test_single_match_defaults_to_monthly(self):
        result = check_for_recurring_provider([bill("a", date(2025, 8, 1))], " HYDRO ONE ")
        assert result.found is True
        assert result.count == 1
        assert result.frequency == RecurringFrequency.MONTHLY

    def test_quarterly_spacing(self):
        bills = [
            bill("a", date(2025, 1, 10), provider_id="enbridge"),
            bill("b", date(2025, 4, 10), provider_id="enbridge"),
        ]
        result = check_for_recurring_provider(bills, "Enbridge Gas", provider_id="enbridge")
        assert result.count == 2
        assert result.frequency == RecurringFrequency.QUARTERLY
