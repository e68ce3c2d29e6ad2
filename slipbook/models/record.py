"""
Record and Aggregation Models for Slipbook

These models describe the data the aggregation engine consumes
(financial records owned by the remote store) and the data it produces
(bucket series and summary figures for the presentation layer).

DESIGN DECISION: Amounts are always magnitudes. The sign of a record is
derived from its kind, never stored. A negative amount is rejected at
the model boundary.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class RecordKind(str, Enum):
    """The two kinds of financial record. Closed set."""
    INCOME = "income"
    EXPENSE = "expense"


class Granularity(str, Enum):
    """Bucket width for an aggregation series."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def default_window(self) -> int:
        """Last 7 days, last 5 weeks, last 6 months."""
        return {
            Granularity.DAY: 7,
            Granularity.WEEK: 5,
            Granularity.MONTH: 6,
        }[self]


# =============================================================================
# FINANCIAL RECORD
# =============================================================================

class FinancialRecord(BaseModel):
    """
    A single income or expense event.
    
    Owned by the remote store; the core only reads it.
    
    `occurred_at` is kept exactly as the store returned it. Upstream data
    may be hand-edited, so the timestamp is only parsed at aggregation
    time, and a failure to parse only means the record is left out of
    time-based aggregation.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)
    
    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier"
    )
    occurred_at: Union[datetime, date, str] = Field(
        ...,
        description="When the event happened (raw, may be malformed)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative magnitude, currency-agnostic"
    )
    kind: RecordKind
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-form user-defined label"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    receipt_ref: Optional[str] = Field(
        default=None,
        description="Opaque reference to a stored receipt image"
    )
    
    @field_validator('kind', mode='before')
    @classmethod
    def normalize_kind(cls, v):
        """Accept 'Income', 'EXPENSE' and friends."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

# =============================================================================
# AGGREGATION OUTPUT
# =============================================================================

class Bucket(BaseModel):
    """
    One point in a chart series.
    
    Ephemeral: recomputed on every aggregation call, never persisted.
    The span is half-open: start <= instant < end.
    """
    
    key: str = Field(
        ...,
        description="Canonical bucket identifier (ISO date of bucket start)"
    )
    label: str = Field(
        ...,
        description="Human-presentable label"
    )
    start: datetime
    end: datetime
    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")
    is_current: bool = False
    
    def value(self, kind: RecordKind) -> Decimal:
        """Total for one kind."""
        if kind == RecordKind.INCOME:
            return self.income_total
        return self.expense_total
    
    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


class PeriodTotals(BaseModel):
    """Headline figures: income, expense and the resulting balance."""
    
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    
    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class CategoryShare(BaseModel):
    """How much of one kind's total went to a single category."""
    
    category: str
    total: Decimal
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Share of the kind's total, in percent"
    )


class BudgetStatus(BaseModel):
    """
    Spending measured against the configured budget.
    
    `alert` and `exceeded` are only ever set while the budget is enabled.
    """
    
    enabled: bool
    spent: Decimal
    limit: Decimal
    percent_used: float = Field(
        ...,
        ge=0.0,
        description="spent / limit in percent (0 when limit is 0)"
    )
    alert: bool = False
    exceeded: bool = False
    
    @property
    def remaining(self) -> Decimal:
        return max(self.limit - self.spent, Decimal("0"))
