"""
Pydantic models for dashboard data.
"""
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Raw Data Models
# =============================================================================

class RawMetricPoint(BaseModel):
    """A timestamped event count as returned by the analytics API."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    count: int

    @classmethod
    def from_api(cls, row: dict[str, Any]) -> "RawMetricPoint":
        """Build from a `{createdAt, _count: {id}}` pageview row."""
        return cls(timestamp=row["createdAt"], count=row["_count"]["id"])


class VisitorsTrendPoint(BaseModel):
    """Server-side unique visitor count for one hour or day."""
    date: datetime
    unique_visitors: int = Field(0, alias="uniqueVisitors")

    model_config = ConfigDict(populate_by_name=True)


class BounceTrendPoint(BaseModel):
    """Server-side bounce counts for one hour or day."""
    date: datetime
    bounce_sessions: int = Field(0, alias="bounceSessions")
    total_sessions: int = Field(0, alias="totalSessions")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Derived Series Models
# =============================================================================

class Granularity(str, Enum):
    """Bucket width for time series."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class TimeBucket(BaseModel):
    """A single bucket of a time series."""
    model_config = ConfigDict(frozen=True)

    bucket_start: datetime
    value: int = 0


class BounceBucket(BaseModel):
    """Bounced vs. engaged sessions for one bucket (stacked bar row)."""
    model_config = ConfigDict(frozen=True)

    bucket_start: datetime
    bounce: int = 0
    non_bounce: int = 0


class CategoricalItem(BaseModel):
    """A named count (browser, OS, device, referrer, page)."""
    name: str
    value: int
    percentage: float | None = None


class CountryAggregate(BaseModel):
    """Visitor count for one country name as reported by the API.

    iso_code is the ISO alpha-3 map key (None when the name is unknown);
    flag_code is a best-effort alpha-2 code for flag icons.
    """
    country_name: str
    count: int
    iso_code: str | None = None
    flag_code: str = ""


# =============================================================================
# Date Range & Comparison
# =============================================================================

class DateRange(BaseModel):
    """Inclusive datetime range for queries."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("start must be on or before end")
        return self

    @classmethod
    def from_dates(cls, start: date, end: date) -> "DateRange":
        """Range covering whole calendar days, start of first to last tick of last."""
        return cls(
            start=datetime.combine(start, time.min),
            end=datetime.combine(end, time.max),
        )

    @classmethod
    def last_days(cls, days: int, today: date | None = None) -> "DateRange":
        """Preset covering the last `days` days up to and including today."""
        today = today or date.today()
        return cls.from_dates(today - timedelta(days=days), today)

    @property
    def days(self) -> int:
        """Whole calendar days between start and end."""
        return (self.end.date() - self.start.date()).days

    @property
    def is_single_day(self) -> bool:
        return self.days == 0


class ComparisonPair(BaseModel):
    """A metric value with its comparison-period value and change."""
    current: float
    previous: float | None = None
    percent_change: float | None = None

    @property
    def direction(self) -> str | None:
        """up, down or same; None when there is no baseline."""
        if self.percent_change is None:
            return None
        if self.percent_change > 0:
            return "up"
        if self.percent_change < 0:
            return "down"
        return "same"


class CoreMetrics(BaseModel):
    """Headline metrics for the stat cards."""
    pageviews: ComparisonPair
    visitors: ComparisonPair
    bounce_rate: ComparisonPair | None = None  # percentage 0-100
    avg_session_duration: ComparisonPair | None = None  # seconds
    comparison_available: bool = True


# =============================================================================
# Realtime
# =============================================================================

class ConnectionStatus(str, Enum):
    """State of the realtime connection indicator."""

    CONNECTED = "connected"
    CONNECTING = "connecting"
    ERROR = "error"


class RealtimeData(BaseModel):
    """Live visitor data."""
    active_visitors: int = Field(0, alias="activeVisitors")
    pageviews_last_24h: int = Field(0, alias="pageviewsLast24h")
    top_pages: list[dict[str, Any]] = Field(default_factory=list, alias="topPagesRealTime")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Preferences
# =============================================================================

class Favorite(BaseModel):
    """A metric pinned by the user."""
    id: str
    name: str
    section: str = ""
    value: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


class Note(BaseModel):
    """A free-text annotation attached to a date."""
    id: str
    date: str
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)


# =============================================================================
# Dashboard Response Models
# =============================================================================

class DashboardSnapshot(BaseModel):
    """Everything a single fetch cycle commits at once."""
    site_id: str
    date_range: DateRange
    comparison_range: DateRange
    granularity: Granularity

    metrics: CoreMetrics
    pageviews: list[TimeBucket]

    top_pages: list[CategoricalItem]
    referrers: list[CategoricalItem]
    browsers: list[CategoricalItem]
    operating_systems: list[CategoricalItem]
    devices: list[CategoricalItem]
    countries: list[CountryAggregate]

    fetched_at: datetime = Field(default_factory=datetime.now)

    @property
    def total_pageviews(self) -> int:
        return sum(b.value for b in self.pageviews)
