"""
Calendar bucketing

Pure functions that map instants onto day / week / month buckets.

Boundaries are computed in local time:
- Day: midnight to midnight
- Week: Monday 00:00 to the next Monday 00:00 (ISO weeks)
- Month: the 1st 00:00 to the 1st of the following month

"Local" means the zone of the reference time. A naive reference time is
taken to be system-local wall time.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Optional

from slipbook.models.record import Granularity


THIS_WEEK_LABEL = "This Week"


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into a datetime.
    
    Accepts datetime and date objects and ISO 8601 strings (a trailing
    'Z' is read as UTC). Returns None for anything else, never raises.
    """
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, time.min)
    if not isinstance(raw, str):
        return None
    
    text = raw.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_local(instant: datetime, zone: Optional[tzinfo]) -> datetime:
    """Express `instant` as wall time in `zone` (None = system local, naive)."""
    if zone is None:
        if instant.tzinfo is not None:
            return instant.astimezone().replace(tzinfo=None)
        return instant
    if instant.tzinfo is None:
        return instant.replace(tzinfo=zone)
    return instant.astimezone(zone)


def bucket_start(instant: datetime, granularity: Granularity) -> datetime:
    """Start of the bucket containing `instant`."""
    midnight = instant.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == Granularity.DAY:
        return midnight
    if granularity == Granularity.WEEK:
        return midnight - timedelta(days=midnight.weekday())
    if granularity == Granularity.MONTH:
        return midnight.replace(day=1)
    raise ValueError(f"Unsupported granularity: {granularity}")


def shift_bucket(start: datetime, granularity: Granularity, n: int) -> datetime:
    """Move a bucket start by `n` buckets (negative moves back in time)."""
    if granularity == Granularity.DAY:
        return start + timedelta(days=n)
    if granularity == Granularity.WEEK:
        return start + timedelta(weeks=n)
    if granularity == Granularity.MONTH:
        year, month = divmod(start.year * 12 + (start.month - 1) + n, 12)
        return start.replace(year=year, month=month + 1, day=1)
    raise ValueError(f"Unsupported granularity: {granularity}")


def bucket_end(start: datetime, granularity: Granularity) -> datetime:
    """Exclusive end of the bucket that begins at `start`."""
    return shift_bucket(start, granularity, 1)


def window_starts(
    reference_time: datetime,
    granularity: Granularity,
    window_size: int,
) -> list[datetime]:
    """Starts of the `window_size` buckets ending with the current one, oldest first."""
    current = bucket_start(reference_time, granularity)
    return [
        shift_bucket(current, granularity, -offset)
        for offset in range(window_size - 1, -1, -1)
    ]


def bucket_key(start: datetime) -> str:
    return start.date().isoformat()


def bucket_label(start: datetime, granularity: Granularity, is_current: bool = False) -> str:
    """English short label: 'Mon', 'This Week' / '3 Mar', 'Mar'."""
    if granularity == Granularity.DAY:
        return start.strftime("%a")
    if granularity == Granularity.WEEK:
        if is_current:
            return THIS_WEEK_LABEL
        return f"{start.day} {start.strftime('%b')}"
    return start.strftime("%b")
