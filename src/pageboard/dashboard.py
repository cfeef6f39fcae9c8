"""
Dashboard orchestration.

DashboardOrchestrator owns the selected site, date range, filters and
map selection. refresh() fetches the current and comparison periods in one
concurrent batch and commits the result as a single DashboardSnapshot, so a
render never mixes data from two fetches.

Each batch is tagged with the (site_id, date_range) it was started for.
If either changes before the batch settles, its results are discarded.
"""
import asyncio
import logging
from typing import Any, Awaitable

from .config import DashboardConfig
from .core.bucketing import (
    bucket,
    bucket_bounce_trend,
    bucket_visitors_trend,
    select_granularity,
    trend_interval,
)
from .core.client import AnalyticsAPIError, AnalyticsClient
from .core.comparison import compare, previous_period
from .core.countries import (
    CountrySummary,
    RankedCountry,
    aggregate_countries,
    build_map_data,
    build_ranked_list,
    resolve,
)
from .core.models import (
    BounceBucket,
    CategoricalItem,
    ComparisonPair,
    CoreMetrics,
    DashboardSnapshot,
    DateRange,
    Favorite,
    Note,
    TimeBucket,
)
from .core.selection import Selection
from .core.series import filter_by_query, to_categorical
from .navigation import NavigationState, QueryStringNavigation, UrlState
from .preferences import Preferences
from .realtime import RealtimePoller

logger = logging.getLogger(__name__)

TREND_METRICS = ("pageviews", "visitors", "bounceRate")

# Current-period queries; any failure here aborts the commit
_CURRENT_QUERIES = (
    "pageviews", "visitors", "bounce_rate", "session_duration",
    "top_pages", "referrers", "browser_stats", "countries",
)

BatchTag = tuple[str, DateRange]


class StaleResultError(Exception):
    """Raised internally when a batch no longer matches the dashboard state."""
    pass


async def _gather(**queries: Awaitable) -> tuple[dict[str, Any], dict[str, BaseException]]:
    """Run named queries concurrently.

    Returns:
        (results, failures): successful values and the exceptions of the
        queries that failed, both keyed by query name
    """
    names = list(queries.keys())
    results = await asyncio.gather(*queries.values(), return_exceptions=True)

    values: dict[str, Any] = {}
    failures: dict[str, BaseException] = {}
    for name, result in zip(names, results):
        if isinstance(result, BaseException):
            logger.error(f"Query '{name}' failed: {result}")
            failures[name] = result
        else:
            values[name] = result
    return values, failures


def _optional_pair(current: float | None, previous: float | None) -> ComparisonPair | None:
    if current is None:
        return None
    return compare(current, previous)


class DashboardOrchestrator:
    """State and data flow for one dashboard view."""

    def __init__(
        self,
        client: AnalyticsClient,
        config: DashboardConfig,
        preferences: Preferences | None = None,
        navigation: NavigationState | None = None,
        poller: RealtimePoller | None = None,
    ):
        self.client = client
        self.config = config
        self.preferences = preferences or Preferences()
        self.navigation = navigation or QueryStringNavigation()

        url = self.navigation.read()
        self.date_range: DateRange = url.date_range or DateRange.last_days(config.default_range_days)
        self.comparison: bool = url.comparison
        self.density: str = url.density
        self.device: str = url.device
        self.country: str = url.country
        self.site_id: str | None = self.preferences.active_site_id or config.default_site_id

        self.search_query: str = ""
        self.selection = Selection()
        self.snapshot: DashboardSnapshot | None = None
        self.error: str | None = None
        self.loading = False
        # Id of the latest refresh() batch; only that batch clears `loading`
        self._batch_id = 0
        self.trends: dict[str, list[TimeBucket] | list[BounceBucket]] = {}

        self.poller = poller or RealtimePoller(
            client, self.site_id, interval=config.realtime_interval_seconds
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def tag(self) -> BatchTag | None:
        if not self.site_id:
            return None
        return self.site_id, self.date_range

    @property
    def url_state(self) -> UrlState:
        return UrlState(
            date_from=self.date_range.start.date(),
            date_to=self.date_range.end.date(),
            comparison=self.comparison,
            density=self.density,
            device=self.device,
            country=self.country,
        )

    def _sync_url(self) -> None:
        self.navigation.write(self.url_state)

    def set_date_range(self, date_range: DateRange) -> None:
        """Select a new range. Call refresh() to load it."""
        if date_range.days > self.config.max_range_days:
            raise ValueError(f"Date range cannot exceed {self.config.max_range_days} days")
        if date_range != self.date_range:
            self.date_range = date_range
            self.trends = {}
        self._sync_url()

    def set_comparison(self, enabled: bool) -> None:
        self.comparison = enabled
        self._sync_url()

    def set_density(self, density: str) -> None:
        if density not in ("compact", "detailed"):
            raise ValueError(f"Unknown density: {density}")
        self.density = density
        self._sync_url()

    def set_filters(self, device: str | None = None, country: str | None = None) -> None:
        """Set or clear (with "") the device and country filters."""
        if device is not None:
            self.device = device
        if country is not None:
            self.country = country
        self._sync_url()

    async def set_site(self, site_id: str | None) -> None:
        """Switch sites: persist the choice, drop old data, restart polling."""
        if site_id == self.site_id:
            return
        self.site_id = site_id
        self.preferences.active_site_id = site_id
        self.snapshot = None
        self.trends = {}
        self.error = None
        self.selection = Selection()
        await self.poller.restart(site_id)

    # =========================================================================
    # FETCHING
    # =========================================================================

    def _check_current(self, tag: BatchTag) -> None:
        if tag != self.tag:
            raise StaleResultError(f"Discarding results for {tag[0]} {tag[1].start:%Y-%m-%d}..{tag[1].end:%Y-%m-%d}")

    async def refresh(self) -> DashboardSnapshot | None:
        """Fetch everything for the current site and range.

        Returns:
            The committed snapshot, or None when the batch failed or went stale.
            On failure `error` is set and the previous snapshot is kept.
        """
        tag = self.tag
        if tag is None:
            self.error = "No site selected"
            return None
        site_id, date_range = tag
        comparison_range = previous_period(date_range)
        limit = self.config.top_limit
        client = self.client

        self._batch_id += 1
        batch_id = self._batch_id
        self.loading = True
        try:
            values, failures = await _gather(
                pageviews=client.get_pageviews(site_id, date_range),
                visitors=client.get_unique_visitors(site_id, date_range),
                bounce_rate=client.get_bounce_rate(site_id, date_range),
                session_duration=client.get_avg_session_duration(site_id, date_range),
                top_pages=client.get_top_pages(site_id, date_range, limit),
                referrers=client.get_referrers(site_id, date_range, limit),
                browser_stats=client.get_browser_stats(site_id, date_range),
                countries=client.get_countries(site_id, date_range),
                prev_pageviews=client.get_pageviews(site_id, comparison_range),
                prev_visitors=client.get_unique_visitors(site_id, comparison_range),
                prev_bounce_rate=client.get_bounce_rate(site_id, comparison_range),
                prev_session_duration=client.get_avg_session_duration(site_id, comparison_range),
            )
        finally:
            if batch_id == self._batch_id:
                self.loading = False

        try:
            self._check_current(tag)
        except StaleResultError as exc:
            logger.debug(str(exc))
            return None

        current_failures = [name for name in _CURRENT_QUERIES if name in failures]
        if current_failures:
            first = failures[current_failures[0]]
            self.error = f"Failed to load analytics data: {first}"
            return None

        comparison_available = not any(name.startswith("prev_") for name in failures)
        self.snapshot = self._build_snapshot(tag, comparison_range, values, comparison_available)
        self.error = None
        return self.snapshot

    def _build_snapshot(
        self,
        tag: BatchTag,
        comparison_range: DateRange,
        values: dict[str, Any],
        comparison_available: bool,
    ) -> DashboardSnapshot:
        site_id, date_range = tag
        tz = self.config.timezone

        points = values["pageviews"]
        total_pageviews = sum(p.count for p in points)

        def previous(name: str) -> Any:
            return values.get(name) if comparison_available else None

        prev_points = previous("prev_pageviews")
        prev_total = sum(p.count for p in prev_points) if prev_points is not None else None

        metrics = CoreMetrics(
            pageviews=compare(total_pageviews, prev_total),
            visitors=compare(values["visitors"], previous("prev_visitors")),
            bounce_rate=_optional_pair(values["bounce_rate"], previous("prev_bounce_rate")),
            avg_session_duration=_optional_pair(values["session_duration"], previous("prev_session_duration")),
            comparison_available=comparison_available,
        )

        stats = values["browser_stats"]
        return DashboardSnapshot(
            site_id=site_id,
            date_range=date_range,
            comparison_range=comparison_range,
            granularity=select_granularity(date_range),
            metrics=metrics,
            pageviews=bucket(points, date_range, tz),
            top_pages=to_categorical(values["top_pages"], "path", total=total_pageviews),
            referrers=to_categorical(values["referrers"], "referrer", total=total_pageviews, unknown="Direct"),
            browsers=to_categorical(stats["browsers"], "browser", total=total_pageviews),
            operating_systems=to_categorical(stats["os"], "os", total=total_pageviews),
            devices=to_categorical(stats["devices"], "device", total=total_pageviews),
            countries=aggregate_countries(values["countries"]),
        )

    async def load_trend(self, metric: str) -> list[TimeBucket] | list[BounceBucket] | None:
        """Series for the metric chart tabs.

        pageviews comes from the committed snapshot when it matches the
        current site and range, otherwise from the raw pageviews endpoint.
        visitors and bounceRate use the server-side trend endpoints.

        Raises:
            ValueError: for an unknown metric
        """
        if metric not in TREND_METRICS:
            raise ValueError(f"Unknown trend metric: {metric}")
        tag = self.tag
        if tag is None:
            return None
        if metric == "pageviews" and self.snapshot and (self.snapshot.site_id, self.snapshot.date_range) == tag:
            return self.snapshot.pageviews
        if metric in self.trends:
            return self.trends[metric]

        site_id, date_range = tag
        interval = trend_interval(date_range)
        tz = self.config.timezone
        try:
            if metric == "pageviews":
                points = await self.client.get_pageviews(site_id, date_range)
                series = bucket(points, date_range, tz)
            elif metric == "visitors":
                rows = await self.client.get_visitors_trend(site_id, date_range, interval)
                series = bucket_visitors_trend(rows, tz)
            else:
                rows = await self.client.get_bounce_rate_trend(site_id, date_range, interval)
                series = bucket_bounce_trend(rows, date_range, tz)
        except AnalyticsAPIError as exc:
            logger.error(f"Query '{metric}-trend' failed: {exc}")
            if tag == self.tag:
                self.error = str(exc)
            return None

        try:
            self._check_current(tag)
        except StaleResultError as exc:
            logger.debug(str(exc))
            return None
        self.trends[metric] = series
        return series

    async def start(self) -> DashboardSnapshot | None:
        """Initial load plus realtime polling."""
        snapshot = await self.refresh()
        self.poller.start()
        return snapshot

    async def close(self) -> None:
        await self.poller.stop()

    # =========================================================================
    # MAP / LIST SELECTION
    # =========================================================================

    def hover_country(self, iso_code: str | None) -> Selection:
        self.selection = self.selection.hover(iso_code)
        return self.selection

    def select_country(self, iso_code: str | None) -> Selection:
        self.selection = self.selection.select(iso_code)
        return self.selection

    def clear_selection(self) -> Selection:
        self.selection = self.selection.clear()
        return self.selection

    # =========================================================================
    # DERIVED VIEWS
    # =========================================================================

    def map_data(self) -> dict[str, int]:
        if not self.snapshot:
            return {}
        return build_map_data(self.snapshot.countries)

    def ranked_countries(self) -> tuple[list[RankedCountry], CountrySummary]:
        """Ranked list, narrowed by the country filter when one is set."""
        aggregates = self.snapshot.countries if self.snapshot else []
        rows, summary = build_ranked_list(aggregates)
        if self.country:
            wanted = resolve(self.country)
            if wanted:
                rows = [r for r in rows if r.iso_code == wanted.alpha3]
            else:
                rows = [r for r in rows if r.name.lower() == self.country.lower()]
        return rows, summary

    def search(self, query: str) -> None:
        self.search_query = query.strip()

    def series(self, kind: str) -> list[CategoricalItem]:
        """A categorical table with the search query (and device filter) applied."""
        if not self.snapshot:
            return []
        tables = {
            "top-pages": self.snapshot.top_pages,
            "referrers": self.snapshot.referrers,
            "browsers": self.snapshot.browsers,
            "operating-systems": self.snapshot.operating_systems,
            "devices": self.snapshot.devices,
        }
        if kind not in tables:
            raise KeyError(kind)
        items = tables[kind]
        if kind == "devices" and self.device:
            items = [i for i in items if i.name.lower() == self.device.lower()]
        return filter_by_query(items, self.search_query)

    def export_rows(self, kind: str) -> list[dict[str, Any]]:
        """Rows for CSV export: name, value, percentage."""
        if kind == "countries":
            rows, _ = self.ranked_countries()
            return [{"name": r.name, "value": r.value, "percentage": r.percentage} for r in rows]
        return [
            {"name": i.name, "value": i.value, "percentage": i.percentage}
            for i in self.series(kind)
        ]

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    def toggle_favorite(self, favorite_id: str, name: str, section: str = "", value: str = "") -> bool:
        return self.preferences.toggle_favorite(favorite_id, name, section, value)

    @property
    def favorites(self) -> list[Favorite]:
        return self.preferences.favorites

    def add_note(self, day: str, content: str) -> Note:
        return self.preferences.add_note(day, content)

    def delete_note(self, note_id: str) -> bool:
        return self.preferences.delete_note(note_id)

    @property
    def notes(self) -> list[Note]:
        return self.preferences.notes
