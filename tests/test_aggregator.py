"""
Tests for the aggregation engine.

Covers fixed-length series, conservation of totals, determinism,
tolerance of malformed timestamps and the dashboard helper figures.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

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
from slipbook.models.record import (
    Bucket,
    FinancialRecord,
    Granularity,
    RecordKind,
)
from slipbook.models.settings import BudgetSettings


# Wednesday afternoon
NOW = datetime(2025, 3, 12, 15, 0)


def make_record(record_id, occurred_at, amount, kind="expense", category="Food"):
    return FinancialRecord(
        id=record_id,
        occurred_at=occurred_at,
        amount=Decimal(str(amount)),
        kind=kind,
        category=category,
    )


def make_bucket(start, income=0, expense=0, is_current=False):
    return Bucket(
        key=start.date().isoformat(),
        label="x",
        start=start,
        end=start + timedelta(days=1),
        income_total=Decimal(str(income)),
        expense_total=Decimal(str(expense)),
        is_current=is_current,
    )


class TestAggregateShape:
    """The series always has exactly window_size buckets."""
    
    @pytest.mark.parametrize("granularity", list(Granularity))
    @pytest.mark.parametrize("window_size", [1, 5, 7, 12])
    def test_fixed_length_without_records(self, granularity, window_size):
        buckets = aggregate([], granularity, window_size, NOW)
        assert len(buckets) == window_size
        assert all(b.income_total == 0 and b.expense_total == 0 for b in buckets)
    
    def test_fixed_length_with_many_records(self):
        records = [
            make_record(f"r{i}", (NOW - timedelta(days=i)).isoformat(), 10)
            for i in range(60)
        ]
        assert len(aggregate(records, Granularity.DAY, 7, NOW)) == 7
    
    def test_ascending_and_only_last_current(self):
        buckets = aggregate([], Granularity.MONTH, 6, NOW)
        starts = [b.start for b in buckets]
        assert starts == sorted(starts)
        assert [b.is_current for b in buckets] == [False] * 5 + [True]
    
    def test_accepts_granularity_string(self):
        buckets = aggregate([], "week", 5, NOW)
        assert buckets[-1].label == "This Week"
    
    @pytest.mark.parametrize("window_size", [0, -1])
    def test_rejects_non_positive_window(self, window_size):
        with pytest.raises(ValueError):
            aggregate([], Granularity.DAY, window_size, NOW)


class TestAggregateTotals:
    """Bucketing and conservation of totals."""
    
    def test_todays_records_land_in_current_bucket(self):
        today = NOW.replace(hour=9).isoformat()
        records = [
            make_record("e1", today, 50),
            make_record("e2", today, 30),
            make_record("i1", today, 200, kind="income", category="Salary"),
        ]
        buckets = aggregate(records, Granularity.DAY, 7, NOW)
        
        current = buckets[-1]
        assert current.is_current
        assert current.income_total == Decimal("200")
        assert current.expense_total == Decimal("80")
        for bucket in buckets[:-1]:
            assert bucket.income_total == 0
            assert bucket.expense_total == 0
    
    def test_malformed_timestamp_is_ignored(self):
        records = [
            make_record("ok1", "2025-03-11T10:00:00", 40),
            make_record("bad", "not-a-date", 999),
            make_record("ok2", "2025-03-12T08:00:00", 25, kind="income"),
        ]
        buckets = aggregate(records, Granularity.DAY, 7, NOW)
        assert series_total(buckets, RecordKind.EXPENSE) == Decimal("40")
        assert series_total(buckets, RecordKind.INCOME) == Decimal("25")
    
    def test_conservation_within_window(self):
        records = [
            make_record("in1", "2025-03-06T00:00:00", 10),
            make_record("in2", "2025-03-09T12:00:00", 15),
            make_record("in3", "2025-03-12T23:59:59", 5),
            make_record("in4", "2025-03-10T07:00:00", 100, kind="income"),
            make_record("old", "2025-03-05T23:59:59", 1000),
            make_record("future", "2025-03-13T00:00:00", 1000),
        ]
        buckets = aggregate(records, Granularity.DAY, 7, NOW)
        assert series_total(buckets, RecordKind.EXPENSE) == Decimal("30")
        assert series_total(buckets, RecordKind.INCOME) == Decimal("100")
    
    def test_deterministic(self):
        records = [
            make_record("a", "2025-03-01T10:00:00", 12),
            make_record("b", "2025-02-11T10:00:00", 7, kind="income"),
            make_record("c", "garbage", 3),
        ]
        first = aggregate(records, Granularity.WEEK, 5, NOW)
        second = aggregate(records, Granularity.WEEK, 5, NOW)
        assert first == second
    
    def test_record_order_does_not_matter(self):
        records = [
            make_record(f"r{i}", f"2025-0{1 + i % 3}-1{i % 9}T10:00:00", i + 1)
            for i in range(9)
        ]
        forward = aggregate(records, Granularity.MONTH, 6, NOW)
        backward = aggregate(list(reversed(records)), Granularity.MONTH, 6, NOW)
        assert forward == backward
    
    def test_sunday_record_counts_in_monday_week(self):
        records = [make_record("sun", "2025-03-09T20:00:00", 60)]
        buckets = aggregate(records, Granularity.WEEK, 5, NOW)
        # The week of Mon 3 Mar holds Sun 9 Mar
        assert buckets[-2].start == datetime(2025, 3, 3)
        assert buckets[-2].expense_total == Decimal("60")
        assert buckets[-1].expense_total == 0
    
    def test_months_across_year_boundary(self):
        records = [
            make_record("dec", "2024-12-31T23:00:00", 70),
            make_record("jan", "2025-01-01T00:00:00", 30),
        ]
        buckets = aggregate(records, Granularity.MONTH, 6, datetime(2025, 2, 10))
        by_key = {b.key: b for b in buckets}
        assert by_key["2024-12-01"].expense_total == Decimal("70")
        assert by_key["2025-01-01"].expense_total == Decimal("30")
    
    def test_utc_record_bucketed_in_reference_zone(self):
        tz = timezone(timedelta(hours=-5))
        reference = datetime(2025, 3, 12, 15, tzinfo=tz)
        # 02:00 UTC on the 12th is 21:00 on the 11th at UTC-5
        records = [make_record("late", "2025-03-12T02:00:00Z", 45)]
        buckets = aggregate(records, Granularity.DAY, 7, reference)
        assert buckets[-2].expense_total == Decimal("45")
        assert buckets[-1].expense_total == 0


class TestSeriesHelpers:
    """Tests for display_max, previous_average and friends."""
    
    def test_display_max_floor_when_empty(self):
        buckets = aggregate([], Granularity.DAY, 7, NOW)
        result = display_max(buckets)
        assert result == Decimal("100")
        assert result > 0
    
    def test_display_max_custom_floor(self):
        buckets = aggregate([], Granularity.DAY, 7, NOW)
        assert display_max(buckets, floor=250) == Decimal("250")
    
    def test_display_max_uses_peak_of_both_kinds(self):
        start = datetime(2025, 3, 10)
        buckets = [
            make_bucket(start, income=300, expense=20),
            make_bucket(start + timedelta(days=1), expense=120),
        ]
        assert display_max(buckets) == Decimal("300")
        assert display_max(buckets, kind=RecordKind.EXPENSE) == Decimal("120")
    
    def test_display_max_headroom(self):
        buckets = [make_bucket(datetime(2025, 3, 10), expense=200)]
        assert display_max(buckets, headroom=Decimal("1.15")) == Decimal("230.00")
    
    def test_peak_below_floor_is_not_raised(self):
        buckets = [make_bucket(datetime(2025, 3, 10), expense=40)]
        assert display_max(buckets) == Decimal("40")
    
    def test_previous_average_skips_current_and_zero(self):
        start = datetime(2025, 3, 6)
        buckets = [
            make_bucket(start, expense=30),
            make_bucket(start + timedelta(days=1)),
            make_bucket(start + timedelta(days=2), expense=90),
            make_bucket(start + timedelta(days=3), expense=500, is_current=True),
        ]
        assert previous_average(buckets, RecordKind.EXPENSE) == Decimal("60")
    
    def test_previous_average_zero_without_history(self):
        buckets = [make_bucket(datetime(2025, 3, 12), income=80, is_current=True)]
        assert previous_average(buckets, RecordKind.INCOME) == 0
    
    def test_current_value(self):
        start = datetime(2025, 3, 11)
        buckets = [
            make_bucket(start, expense=5),
            make_bucket(start + timedelta(days=1), expense=17, is_current=True),
        ]
        assert current_value(buckets, RecordKind.EXPENSE) == Decimal("17")
        assert current_value([], RecordKind.EXPENSE) == 0


class TestSummaries:
    """Tests for totals, category breakdown and budget status."""
    
    def test_summarize_totals_balance(self):
        records = [
            make_record("i", "2025-03-01", 1000, kind="income", category="Salary"),
            make_record("e1", "2025-03-02", 250),
            make_record("e2", "not-a-date", 150),
        ]
        totals = summarize_totals(records)
        assert totals.income == Decimal("1000")
        assert totals.expense == Decimal("400")
        assert totals.balance == Decimal("600")
    
    def test_category_breakdown_largest_first(self):
        records = [
            make_record("a", "2025-03-01", 20, category="Transport"),
            make_record("b", "2025-03-01", 50, category="Food"),
            make_record("c", "2025-03-02", 30, category="Food"),
            make_record("d", "2025-03-02", 20, category="Rent"),
            make_record("i", "2025-03-02", 900, kind="income", category="Salary"),
        ]
        shares = category_breakdown(records)
        assert [s.category for s in shares] == ["Food", "Rent", "Transport"]
        assert shares[0].total == Decimal("80")
        assert shares[0].percentage == pytest.approx(66.6667, rel=1e-3)
        assert sum(s.percentage for s in shares) == pytest.approx(100.0)
    
    def test_category_breakdown_income(self):
        records = [make_record("i", "2025-03-02", 900, kind="income", category="Salary")]
        shares = category_breakdown(records, kind=RecordKind.INCOME)
        assert len(shares) == 1
        assert shares[0].percentage == 100.0
    
    def test_category_breakdown_empty(self):
        assert category_breakdown([]) == []
    
    def test_budget_disabled_never_alerts(self):
        status = budget_status(Decimal("20000"), BudgetSettings(enabled=False))
        assert status.alert is False
        assert status.exceeded is False
        assert status.percent_used == 200.0
    
    def test_budget_alert_at_threshold(self):
        budget = BudgetSettings(enabled=True, limit=Decimal("1000"), alert_threshold_percent=80)
        assert budget_status(Decimal("799"), budget).alert is False
        status = budget_status(Decimal("800"), budget)
        assert status.alert is True
        assert status.exceeded is False
        assert status.remaining == Decimal("200")
    
    def test_budget_exceeded(self):
        budget = BudgetSettings(enabled=True, limit=Decimal("1000"))
        status = budget_status(Decimal("1200"), budget)
        assert status.exceeded is True
        assert status.alert is True
        assert status.remaining == 0
    
    def test_budget_zero_limit(self):
        budget = BudgetSettings(enabled=True, limit=Decimal("0"))
        assert budget_status(Decimal("0"), budget).alert is False
        status = budget_status(Decimal("5"), budget)
        assert status.percent_used == 0.0
        assert status.exceeded is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
