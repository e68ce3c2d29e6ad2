"""Time-bucketed aggregation of financial records."""

from slipbook.aggregation.aggregator import (
    aggregate,
    budget_status,
    build_skeleton,
    category_breakdown,
    current_value,
    display_max,
    previous_average,
    series_total,
    summarize_totals,
)
from slipbook.aggregation.calendar import (
    bucket_end,
    bucket_key,
    bucket_label,
    bucket_start,
    parse_timestamp,
    shift_bucket,
    to_local,
    window_starts,
)

__all__ = [
    "aggregate",
    "budget_status",
    "build_skeleton",
    "category_breakdown",
    "current_value",
    "display_max",
    "previous_average",
    "series_total",
    "summarize_totals",
    "bucket_end",
    "bucket_key",
    "bucket_label",
    "bucket_start",
    "parse_timestamp",
    "shift_bucket",
    "to_local",
    "window_starts",
]
