"""Operations on session-local split bills."""

from decimal import ROUND_DOWN, Decimal

from billport_core.exceptions import ValidationError
from billport_core.models.splitting import Person, SplitBill
from billport_core.parsing import CENTS, round_cents


def split_evenly(bill: SplitBill) -> SplitBill:
    """Divide the total evenly across everyone on the bill.

    The total is rounded to cents first. Shares are whole cents; leftover
    cents go one each to the first people so the shares always add up to
    the total.
    """
    if not bill.people:
        raise ValidationError(
            "Cannot split a bill with no people",
            field="people",
            constraint="at least one person",
        )
    count = len(bill.people)
    total = round_cents(bill.total_amount)
    base = (total / count).quantize(CENTS, rounding=ROUND_DOWN)
    leftover = int((total - base * count) / CENTS)

    people = [
        person.model_copy(update={"amount": base + (CENTS if i < leftover else 0)})
        for i, person in enumerate(bill.people)
    ]
    return bill.model_copy(update={"total_amount": total, "people": people})


def toggle_paid(bill: SplitBill, person_id: str) -> SplitBill:
    """Flip one person's paid flag."""
    if not any(p.id == person_id for p in bill.people):
        raise ValidationError(
            f"No person {person_id!r} on split bill {bill.id!r}",
            field="person_id",
            value=person_id,
        )
    people = [
        p.model_copy(update={"paid": not p.paid}) if p.id == person_id else p
        for p in bill.people
    ]
    return bill.model_copy(update={"people": people})


def outstanding_amount(bill: SplitBill) -> Decimal:
    return bill.outstanding_amount


def _share_line(person: Person) -> str:
    mark = "✅" if person.paid else "❌"
    label = f"{person.emoji} {person.name}" if person.emoji else person.name
    return f"{label}: ${person.amount:.2f} {mark}"


def format_share_text(bill: SplitBill) -> str:
    """Render the plain-text summary sent to the people on the bill."""
    lines = "\n".join(_share_line(p) for p in bill.people)
    return (
        f"💰 {bill.title}\n\n"
        f"Total: ${bill.total_amount:.2f}\n\n"
        f"{lines}\n\n"
        "Split with MyBillPort 📱"
    )
