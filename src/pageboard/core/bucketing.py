"""
Adaptive time bucketing for pageview series.

Raw points come back from the API at whatever resolution it stores them
(often one row per event or per minute). Charts need a handful of evenly
sized buckets, so the bucket width is chosen from the span of the selected
range:

- single day: 24 hourly buckets, zero-seeded so empty hours still render
- up to 90 days: one bucket per calendar day that has data
- up to 365 days: one bucket per ISO week (keyed by its Monday)
- longer: one bucket per calendar month

Bucketing is lossless: the bucket values always sum to the input counts.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo

from .models import (
    BounceBucket,
    BounceTrendPoint,
    DateRange,
    Granularity,
    RawMetricPoint,
    TimeBucket,
    VisitorsTrendPoint,
)

logger = logging.getLogger(__name__)

DAY_MAX_DAYS = 90
WEEK_MAX_DAYS = 365


def select_granularity(date_range: DateRange) -> Granularity:
    """Pick the bucket width for a range."""
    days = date_range.days
    if days == 0:
        return Granularity.HOUR
    if days <= DAY_MAX_DAYS:
        return Granularity.DAY
    if days <= WEEK_MAX_DAYS:
        return Granularity.WEEK
    return Granularity.MONTH


def trend_interval(date_range: DateRange) -> str:
    """Interval the trend endpoints aggregate at server-side."""
    return "hour" if date_range.is_single_day else "day"


def _resolve_tz(tz: str | tzinfo | None) -> tzinfo | None:
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_wall_clock(ts: datetime, tz: str | tzinfo | None = None) -> datetime:
    """Convert a timestamp to a naive wall-clock time in `tz`.

    Naive timestamps are assumed to already be wall-clock times.
    """
    zone = _resolve_tz(tz)
    if ts.tzinfo is not None and zone is not None:
        ts = ts.astimezone(zone)
    return ts.replace(tzinfo=None)


def truncate(ts: datetime, granularity: Granularity) -> datetime:
    """Truncate a wall-clock timestamp to the start of its bucket."""
    if granularity is Granularity.HOUR:
        return ts.replace(minute=0, second=0, microsecond=0)
    midnight = ts.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.DAY:
        return midnight
    if granularity is Granularity.WEEK:
        return midnight - timedelta(days=midnight.weekday())
    return midnight.replace(day=1)


def _hour_slots(date_range: DateRange) -> list[datetime]:
    day = date_range.start.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    return [day + timedelta(hours=h) for h in range(24)]


def bucket(
    points: Iterable[RawMetricPoint],
    date_range: DateRange,
    tz: str | tzinfo | None = None,
) -> list[TimeBucket]:
    """Re-aggregate raw points into a sorted, gap-free-per-key time series.

    Args:
        points: Raw timestamped counts
        date_range: The selected range; its span picks the granularity
        tz: Site timezone that aware timestamps are converted into

    Returns:
        Buckets in ascending order. For a single-day range this is always
        exactly 24 hourly buckets, even when `points` is empty.
    """
    granularity = select_granularity(date_range)

    if granularity is Granularity.HOUR:
        slots = _hour_slots(date_range)
        hourly = [0] * 24
        for point in points:
            hourly[to_wall_clock(point.timestamp, tz).hour] += point.count
        return [TimeBucket(bucket_start=s, value=v) for s, v in zip(slots, hourly)]

    totals: dict[datetime, int] = defaultdict(int)
    for point in points:
        key = truncate(to_wall_clock(point.timestamp, tz), granularity)
        totals[key] += point.count

    logger.debug(f"Bucketed into {len(totals)} {granularity.value} buckets")
    return [TimeBucket(bucket_start=k, value=totals[k]) for k in sorted(totals)]


def bucket_visitors_trend(
    rows: Iterable[VisitorsTrendPoint],
    tz: str | tzinfo | None = None,
) -> list[TimeBucket]:
    """Server-aggregated visitor trend rows as a sorted series.

    The server already aggregates at the requested interval, so rows that
    share a timestamp are summed rather than re-bucketed.
    """
    totals: dict[datetime, int] = defaultdict(int)
    for row in rows:
        totals[to_wall_clock(row.date, tz)] += row.unique_visitors
    return [TimeBucket(bucket_start=k, value=totals[k]) for k in sorted(totals)]


def bucket_bounce_trend(
    rows: Iterable[BounceTrendPoint],
    date_range: DateRange,
    tz: str | tzinfo | None = None,
) -> list[BounceBucket]:
    """Stacked bounce/non-bounce rows for the bounce-rate chart.

    Single-day ranges get 24 zero-seeded hourly rows; longer ranges keep the
    server's daily rows.
    """
    def split(row: BounceTrendPoint) -> tuple[int, int]:
        return row.bounce_sessions, max(row.total_sessions - row.bounce_sessions, 0)

    if date_range.is_single_day:
        slots = _hour_slots(date_range)
        bounce = [0] * 24
        non_bounce = [0] * 24
        for row in rows:
            hour = to_wall_clock(row.date, tz).hour
            b, n = split(row)
            bounce[hour] += b
            non_bounce[hour] += n
        return [
            BounceBucket(bucket_start=s, bounce=b, non_bounce=n)
            for s, b, n in zip(slots, bounce, non_bounce)
        ]

    result = []
    for row in rows:
        b, n = split(row)
        result.append(BounceBucket(bucket_start=to_wall_clock(row.date, tz), bounce=b, non_bounce=n))
    return sorted(result, key=lambda r: r.bucket_start)
