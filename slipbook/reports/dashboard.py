"""
Dashboard Report Builder

DESIGN DECISION: Reporting is DETERMINISTIC given the records and the
reference time. The reporter fetches every record once, then runs the
pure aggregation functions over them. The clock is injected so tests can
pin "now".

This is the bridge between:
- The remote record store (flat, unordered records)
- The presentation layer (chart series and headline figures)
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union

from pydantic import BaseModel, Field

from slipbook.aggregation import (
    aggregate,
    budget_status,
    category_breakdown,
    current_value,
    display_max,
    previous_average,
    series_total,
    summarize_totals,
)
from slipbook.config import AggregationSettings
from slipbook.models.record import (
    Bucket,
    BudgetStatus,
    CategoryShare,
    FinancialRecord,
    Granularity,
    PeriodTotals,
    RecordKind,
)
from slipbook.models.settings import BudgetSettings
from slipbook.services.storage import RecordStoreInterface, StorageError


def _normalize(value):
    """Enum lookups accept the same spellings as FinancialRecord.kind."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


class ReportError(Exception):
    """The records needed for a report could not be fetched."""
    pass


class DashboardReport(BaseModel):
    """Everything the dashboard shows for one granularity and kind."""
    
    generated_at: datetime
    granularity: Granularity
    kind: RecordKind
    buckets: list[Bucket]
    display_max: Decimal = Field(
        ...,
        gt=0,
        description="Normalization ceiling for bar heights"
    )
    series_total: Decimal
    current_value: Decimal
    previous_average: Decimal
    totals: PeriodTotals
    categories: list[CategoryShare] = Field(default_factory=list)
    budget: Optional[BudgetStatus] = None
    record_count: int = Field(ge=0)


class DashboardReporter:
    """
    Builds DashboardReports from a record store.
    
    GUARANTEES:
    - Only reports what the store returned
    - Malformed records lower the counts, they never fail the report
    - A storage failure is raised as ReportError
    """
    
    def __init__(
        self,
        record_store: RecordStoreInterface,
        settings: Optional[AggregationSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = record_store
        self._settings = settings or AggregationSettings()
        self._clock = clock
    
    async def fetch_records(self) -> list[FinancialRecord]:
        try:
            return await self._store.fetch_all_records()
        except StorageError as e:
            raise ReportError(f"Could not fetch records: {e}") from e
    
    async def build(
        self,
        granularity: Union[Granularity, str] = Granularity.DAY,
        kind: Union[RecordKind, str] = RecordKind.EXPENSE,
        window_size: Optional[int] = None,
        reference_time: Optional[datetime] = None,
        budget: Optional[BudgetSettings] = None,
    ) -> DashboardReport:
        """
        Build the dashboard for one granularity and kind.
        
        Args:
            granularity: Bucket width
            kind: Which total the chart figures refer to
            window_size: Number of buckets (configured default if None)
            reference_time: "Now" (injected clock if None)
            budget: When given, spending this calendar month is measured against it
        """
        records = await self.fetch_records()
        return self.build_from_records(
            records,
            granularity=granularity,
            kind=kind,
            window_size=window_size,
            reference_time=reference_time,
            budget=budget,
        )
    
    def build_from_records(
        self,
        records: list[FinancialRecord],
        granularity: Union[Granularity, str] = Granularity.DAY,
        kind: Union[RecordKind, str] = RecordKind.EXPENSE,
        window_size: Optional[int] = None,
        reference_time: Optional[datetime] = None,
        budget: Optional[BudgetSettings] = None,
    ) -> DashboardReport:
        granularity = Granularity(_normalize(granularity))
        kind = RecordKind(_normalize(kind))
        window_size = window_size or self._settings.window_for(granularity)
        reference_time = reference_time or self._clock()
        
        buckets = aggregate(records, granularity, window_size, reference_time)
        
        budget_result = None
        if budget is not None:
            this_month = aggregate(records, Granularity.MONTH, 1, reference_time)[0]
            budget_result = budget_status(this_month.expense_total, budget)
        
        return DashboardReport(
            generated_at=reference_time,
            granularity=granularity,
            kind=kind,
            buckets=buckets,
            display_max=display_max(
                buckets,
                floor=self._settings.scale_floor,
                headroom=self._settings.scale_headroom,
                kind=kind,
            ),
            series_total=series_total(buckets, kind),
            current_value=current_value(buckets, kind),
            previous_average=previous_average(buckets, kind),
            totals=summarize_totals(records),
            categories=category_breakdown(records, RecordKind.EXPENSE),
            budget=budget_result,
            record_count=len(records),
        )
