"""Models for per-biller bill insights."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InsightSource(str, Enum):
    """Which path produced an insight."""

    AI = "ai"
    DETERMINISTIC = "deterministic"


class TrendDirection(str, Enum):
    """Direction of the latest bill relative to the previous one."""

    STABLE = "stable"
    INCREASED = "increased"
    DECREASED = "decreased"
    NOT_ENOUGH_DATA = "not enough data"


class BillerHistoryEntry(BaseModel):
    """One historical bill from a single biller."""

    amount: Decimal = Field(description="Bill amount in CAD")
    due_date: date = Field(description="Due date of the bill")
    status: str = Field(default="unpaid", description="Bill status at the time")
    category: Optional[str] = Field(default=None)
    is_recurring: bool = Field(default=False)


class Insight(BaseModel):
    """Summary, trend and tips for one biller's bill history.

    Field names serialize to camelCase so that the same shape is produced
    by the deterministic analyzer and parsed back from a generative model.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    summary: str = Field(description="One or two sentence overview")
    trend: str = Field(description="Description of the latest change")
    tips: list[str] = Field(min_length=1, description="Actionable tips, at least one")
    percent_change: Optional[float] = Field(
        default=None,
        description="Latest vs previous bill in percent, one decimal; None with < 2 bills",
    )
    avg_amount: float = Field(description="Mean bill amount, rounded to cents")
    min_amount: float = Field(description="Smallest bill amount")
    max_amount: float = Field(description="Largest bill amount")
    source: InsightSource = Field(
        default=InsightSource.DETERMINISTIC,
        description="Which path produced this insight",
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON shape returned by the insights endpoint."""
        return self.model_dump(mode="json", by_alias=True)
