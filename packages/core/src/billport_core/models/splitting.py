"""Session-local bill splitting models."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field


class Person(BaseModel):
    """A participant in a split bill and their share."""

    id: str
    name: str
    emoji: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    paid: bool = False


class SplitBill(BaseModel):
    """A bill shared among several people, each paying their own share."""

    id: str
    title: str
    total_amount: Decimal = Field(ge=Decimal("0"))
    people: list[Person] = Field(default_factory=list)
    created_date: date

    @computed_field
    @property
    def outstanding_amount(self) -> Decimal:
        """Sum of the shares not yet marked paid."""
        return sum((p.amount for p in self.people if not p.paid), Decimal("0"))

    @computed_field
    @property
    def is_settled(self) -> bool:
        return all(p.paid for p in self.people)
