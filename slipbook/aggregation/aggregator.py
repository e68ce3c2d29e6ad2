"""
Aggregation Engine

Turns an unordered collection of financial records into a fixed-length,
chronologically ordered series of buckets, plus the summary figures the
dashboard shows next to it.

GUARANTEES:
- The series always has exactly `window_size` buckets. Sparse data never
  shrinks it; empty buckets carry zero totals.
- A record whose timestamp cannot be parsed is dropped, never fatal.
- Pure: the only notion of "now" is the `reference_time` argument.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union

import structlog

from slipbook.aggregation.calendar import (
    bucket_end,
    bucket_key,
    bucket_label,
    bucket_start,
    parse_timestamp,
    to_local,
    window_starts,
)
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


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
DEFAULT_SCALE_FLOOR = Decimal("100")


def build_skeleton(
    granularity: Granularity,
    window_size: int,
    reference_time: datetime,
) -> list[Bucket]:
    """Empty buckets for the window, oldest first, last one current."""
    starts = window_starts(reference_time, granularity, window_size)
    last = len(starts) - 1
    return [
        Bucket(
            key=bucket_key(start),
            label=bucket_label(start, granularity, is_current=(i == last)),
            start=start,
            end=bucket_end(start, granularity),
            is_current=(i == last),
        )
        for i, start in enumerate(starts)
    ]


def aggregate(
    records: Iterable[FinancialRecord],
    granularity: Union[Granularity, str],
    window_size: int,
    reference_time: datetime,
) -> list[Bucket]:
    """
    Bucket records by time and sum income and expense separately.
    
    Args:
        records: Records in any order
        granularity: Day, week or month buckets
        window_size: Number of buckets, ending with the one holding reference_time
        reference_time: "Now" for this call; its zone defines local time
        
    Returns:
        Exactly window_size buckets, ascending by time
        
    Raises:
        ValueError: If window_size is not positive
    """
    granularity = Granularity(granularity)
    if window_size <= 0:
        raise ValueError(f"window_size must be positive, got {window_size}")
    
    zone = reference_time.tzinfo
    buckets = build_skeleton(granularity, window_size, reference_time)
    by_start = {bucket.start: bucket for bucket in buckets}
    window_begin = buckets[0].start
    window_end = buckets[-1].end
    
    for record in records:
        instant = parse_timestamp(record.occurred_at)
        if instant is None:
            logger.debug(
                "record_skipped",
                record_id=record.id,
                reason="unparseable_timestamp",
            )
            continue
        
        try:
            local = to_local(instant, zone)
        except (OverflowError, ValueError):
            logger.debug(
                "record_skipped",
                record_id=record.id,
                reason="timestamp_out_of_range",
            )
            continue
        
        if not (window_begin <= local < window_end):
            continue
        
        bucket = by_start.get(bucket_start(local, granularity))
        if bucket is None:
            continue
        
        if record.kind == RecordKind.INCOME:
            bucket.income_total += record.amount
        else:
            bucket.expense_total += record.amount
    
    return buckets


# =============================================================================
# SERIES HELPERS
# =============================================================================

def display_max(
    buckets: Sequence[Bucket],
    floor: Union[Decimal, int, float] = DEFAULT_SCALE_FLOOR,
    headroom: Union[Decimal, int, float] = 1,
    kind: Optional[RecordKind] = None,
) -> Decimal:
    """
    Largest bar value, used to normalize bar heights.
    
    Looks at both totals of every bucket, or only `kind` when given.
    Multiplied by `headroom` (e.g. 1.15 leaves space above the tallest
    bar). When everything is zero the floor is returned, so the result is
    always positive.
    """
    if kind is None:
        values = (max(b.income_total, b.expense_total) for b in buckets)
    else:
        values = (b.value(kind) for b in buckets)
    
    peak = max(values, default=ZERO)
    if peak <= 0:
        return Decimal(str(floor))
    return peak * Decimal(str(headroom))


def previous_average(buckets: Sequence[Bucket], kind: RecordKind) -> Decimal:
    """
    Typical value of a past period.
    
    Mean over the non-current buckets, counting only buckets with a
    nonzero value. 0 when no such bucket exists.
    """
    values = [
        b.value(kind) for b in buckets
        if not b.is_current and b.value(kind) != 0
    ]
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def current_value(buckets: Sequence[Bucket], kind: RecordKind) -> Decimal:
    for bucket in buckets:
        if bucket.is_current:
            return bucket.value(kind)
    return ZERO


def series_total(buckets: Sequence[Bucket], kind: RecordKind) -> Decimal:
    return sum((b.value(kind) for b in buckets), ZERO)


# =============================================================================
# SUMMARIES
# =============================================================================

def summarize_totals(records: Iterable[FinancialRecord]) -> PeriodTotals:
    """Income, expense and balance over every record, timestamps ignored."""
    income = ZERO
    expense = ZERO
    for record in records:
        if record.kind == RecordKind.INCOME:
            income += record.amount
        else:
            expense += record.amount
    return PeriodTotals(income=income, expense=expense)


def category_breakdown(
    records: Iterable[FinancialRecord],
    kind: RecordKind = RecordKind.EXPENSE,
) -> list[CategoryShare]:
    """Per-category totals for one kind, largest first."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        if record.kind == kind:
            totals[record.category] += record.amount
    
    grand_total = sum(totals.values(), ZERO)
    shares = [
        CategoryShare(
            category=category,
            total=total,
            percentage=float(total / grand_total * 100) if grand_total > 0 else 0.0,
        )
        for category, total in totals.items()
    ]
    shares.sort(key=lambda s: (-s.total, s.category))
    return shares


def budget_status(spent: Decimal, budget: BudgetSettings) -> BudgetStatus:
    """Measure `spent` against the budget limit and alert threshold."""
    limit = budget.limit
    percent_used = float(spent / limit * 100) if limit > 0 else 0.0
    
    exceeded = budget.enabled and spent > limit
    alert = budget.enabled and spent > 0 and (
        exceeded or percent_used >= budget.alert_threshold_percent
    )
    
    return BudgetStatus(
        enabled=budget.enabled,
        spent=spent,
        limit=limit,
        percent_used=percent_used,
        alert=alert,
        exceeded=exceeded,
    )
