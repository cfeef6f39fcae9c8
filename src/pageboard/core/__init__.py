"""
Core analytics module.

Contains the data models, the API client, and the pure transformations
(bucketing, comparison, country resolution) the dashboard is built on.
"""

from .bucketing import bucket, select_granularity
from .client import AnalyticsAPIError, AnalyticsClient
from .comparison import TICK, compare, percent_change, previous_period
from .countries import build_map_data, build_ranked_list, flag_code, map_key, resolve
from .models import (
    BounceBucket,
    CategoricalItem,
    ComparisonPair,
    ConnectionStatus,
    CoreMetrics,
    CountryAggregate,
    DashboardSnapshot,
    DateRange,
    Favorite,
    Granularity,
    Note,
    RawMetricPoint,
    RealtimeData,
    TimeBucket,
)
from .selection import Selection

__all__ = [
    "RawMetricPoint", "TimeBucket", "BounceBucket", "Granularity",
    "DateRange", "ComparisonPair", "CoreMetrics",
    "CategoricalItem", "CountryAggregate", "DashboardSnapshot",
    "Favorite", "Note", "RealtimeData", "ConnectionStatus",
    "bucket", "select_granularity",
    "TICK", "previous_period", "percent_change", "compare",
    "resolve", "map_key", "flag_code", "build_map_data", "build_ranked_list",
    "Selection",
    "AnalyticsClient", "AnalyticsAPIError",
]
