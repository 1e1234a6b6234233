"""Tests for split bills."""

from datetime import date
from decimal import Decimal

import pytest

from billport_core.exceptions import ValidationError
from billport_core.models import Person, SplitBill
from billport_core.splitting import (
    format_share_text,
    outstanding_amount,
    split_evenly,
    toggle_paid,
)


@pytest.fixture
def dinner() -> SplitBill:
    return SplitBill(
        id="s1",
        title="Dinner",
        total_amount=Decimal("100.00"),
        people=[
            Person(id="1", name="You", emoji="👨"),
            Person(id="2", name="Sarah", emoji="👩"),
            Person(id="3", name="Mike", emoji="🧑"),
        ],
        created_date=date(2025, 8, 1),
    )


class TestSplitEvenly:
    """Test suite for split_evenly."""

    def test_shares_add_up_to_total(self, dinner):
        """Leftover cents go to the first people."""
        split = split_evenly(dinner)
        assert [p.amount for p in split.people] == [
            Decimal("33.34"),
            Decimal("33.33"),
            Decimal("33.33"),
        ]
        assert sum(p.amount for p in split.people) == Decimal("100.00")

    def test_even_split(self, dinner):
        bill = dinner.model_copy(update={"total_amount": Decimal("180.00")})
        assert {p.amount for p in split_evenly(bill).people} == {Decimal("60.00")}

    def test_sub_cent_total_is_rounded_first(self, dinner):
        """Shares are whole cents and add up to the rounded total."""
        bill = dinner.model_copy(update={"total_amount": Decimal("10.005")})
        split = split_evenly(bill)

        assert split.total_amount == Decimal("10.01")
        assert [p.amount for p in split.people] == [
            Decimal("3.34"),
            Decimal("3.34"),
            Decimal("3.33"),
        ]
        assert sum(p.amount for p in split.people) == split.total_amount

    def test_no_people(self, dinner):
        with pytest.raises(ValidationError):
            split_evenly(dinner.model_copy(update={"people": []}))


class TestToggleAndOutstanding:
    """Test suite for toggle_paid and outstanding_amount."""

    def test_toggle_updates_outstanding(self, dinner):
        split = split_evenly(dinner)
        split = toggle_paid(split, "1")

        assert split.people[0].paid
        assert outstanding_amount(split) == Decimal("66.66")
        assert not split.is_settled

        split = toggle_paid(toggle_paid(split, "2"), "3")
        assert split.is_settled
        assert outstanding_amount(split) == Decimal("0")

    def test_toggle_twice_restores(self, dinner):
        assert not toggle_paid(toggle_paid(dinner, "2"), "2").people[1].paid

    def test_unknown_person(self, dinner):
        with pytest.raises(ValidationError):
            toggle_paid(dinner, "99")


class TestShareText:
    """Test suite for format_share_text."""

    def test_share_text(self, dinner):
        split = toggle_paid(split_evenly(dinner), "1")
        assert format_share_text(split) == (
            "💰 Dinner\n\n"
            "Total: $100.00\n\n"
            "👨 You: $33.34 ✅\n"
            "👩 Sarah: $33.33 ❌\n"
            "🧑 Mike: $33.33 ❌\n\n"
            "Split with MyBillPort 📱"
        )
