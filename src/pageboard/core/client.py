"""
HTTP client for the remote analytics API.

The API returns pre-aggregated counts; this client only shapes requests and
parses responses. Re-bucketing and comparison happen in the dashboard.
"""
import logging
from datetime import date, datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .models import (
    BounceTrendPoint,
    DateRange,
    RawMetricPoint,
    RealtimeData,
    VisitorsTrendPoint,
)

logger = logging.getLogger(__name__)


class AnalyticsAPIError(Exception):
    """Raised when the analytics API fails or returns a non-2xx response."""

    def __init__(self, endpoint: str, message: str, status_code: int | None = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"Failed to fetch {endpoint}: {message}")


def _timestamp_param(value: datetime | date) -> str:
    """Full ISO 8601 timestamp for event-count endpoints."""
    if isinstance(value, datetime):
        return value.isoformat()
    return datetime.combine(value, datetime.min.time()).isoformat()


def _date_param(value: datetime | date) -> str:
    """Date-only value for session-level endpoints."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


class AnalyticsClient:
    """Client for querying the analytics API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _fetch(self, endpoint: str, params: Optional[dict[str, str]] = None) -> Any:
        """GET an analytics endpoint and return the decoded JSON body."""
        url = f"{self.base_url}/api/analytics{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params or {})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise AnalyticsAPIError(
                endpoint, exc.response.reason_phrase or str(exc.response.status_code),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AnalyticsAPIError(endpoint, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            # Body was not JSON
            raise AnalyticsAPIError(endpoint, f"invalid response body ({exc})") from exc

    def _range_params(self, site_id: str, date_range: DateRange, date_only: bool = False) -> dict[str, str]:
        fmt = _date_param if date_only else _timestamp_param
        return {
            "siteId": site_id,
            "startDate": fmt(date_range.start),
            "endDate": fmt(date_range.end),
        }

    @staticmethod
    def _parse(endpoint: str, model, payload: Any):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise AnalyticsAPIError(endpoint, f"unexpected payload: {exc.error_count()} errors") from exc

    # =========================================================================
    # TRAFFIC
    # =========================================================================

    async def get_pageviews(self, site_id: str, date_range: DateRange) -> list[RawMetricPoint]:
        """Raw pageview counts, one row per stored bucket."""
        rows = await self._fetch("/pageviews", self._range_params(site_id, date_range))
        try:
            return [RawMetricPoint.from_api(r) for r in rows or []]
        except (KeyError, TypeError, ValidationError) as exc:
            raise AnalyticsAPIError("/pageviews", f"unexpected payload: {exc}") from exc

    async def get_unique_visitors(self, site_id: str, date_range: DateRange) -> int:
        """Unique visitors in the range."""
        data = await self._fetch("/visitors", self._range_params(site_id, date_range))
        return int((data or {}).get("uniqueVisitors") or 0)

    async def get_bounce_rate(self, site_id: str, date_range: DateRange) -> float | None:
        """Bounce rate as a percentage (0-100), None when the API has no value."""
        data = await self._fetch("/bounce-rate", self._range_params(site_id, date_range, date_only=True))
        value = (data or {}).get("bounceRate")
        return float(value) if isinstance(value, (int, float)) else None

    async def get_avg_session_duration(self, site_id: str, date_range: DateRange) -> float | None:
        """Average session duration in seconds (the API reports milliseconds)."""
        data = await self._fetch("/session-duration", self._range_params(site_id, date_range, date_only=True))
        value = (data or {}).get("averageSessionDuration")
        return value / 1000 if isinstance(value, (int, float)) else None

    # =========================================================================
    # BREAKDOWNS
    # =========================================================================

    async def get_top_pages(self, site_id: str, date_range: DateRange, limit: int = 10) -> list[dict[str, Any]]:
        """Top pages as `{path, _count: {id}}` rows."""
        params = self._range_params(site_id, date_range)
        params["limit"] = str(limit)
        return await self._fetch("/pages", params) or []

    async def get_referrers(self, site_id: str, date_range: DateRange, limit: int = 10) -> list[dict[str, Any]]:
        """Top referrers as `{referrer, _count: {id}}` rows."""
        params = self._range_params(site_id, date_range)
        params["limit"] = str(limit)
        return await self._fetch("/referrers", params) or []

    async def get_browser_stats(self, site_id: str, date_range: DateRange) -> dict[str, list[dict[str, Any]]]:
        """Browser, OS and device breakdowns."""
        data = await self._fetch("/browsers", self._range_params(site_id, date_range)) or {}
        return {
            "browsers": data.get("browsers") or [],
            "os": data.get("os") or [],
            "devices": data.get("devices") or [],
        }

    async def get_countries(self, site_id: str, date_range: DateRange) -> list[dict[str, Any]]:
        """Visitors per country name as `{country, _count: {id}}` rows."""
        return await self._fetch("/countries", self._range_params(site_id, date_range)) or []

    # =========================================================================
    # TRENDS
    # =========================================================================

    async def get_visitors_trend(
        self, site_id: str, date_range: DateRange, interval: str = "day"
    ) -> list[VisitorsTrendPoint]:
        """Unique visitors per hour or day, aggregated server-side."""
        params = self._range_params(site_id, date_range)
        params["interval"] = interval
        rows = await self._fetch("/visitors-trend", params) or []
        return [self._parse("/visitors-trend", VisitorsTrendPoint, r) for r in rows]

    async def get_bounce_rate_trend(
        self, site_id: str, date_range: DateRange, interval: str = "day"
    ) -> list[BounceTrendPoint]:
        """Bounced/total sessions per hour or day, aggregated server-side."""
        params = self._range_params(site_id, date_range)
        params["interval"] = interval
        rows = await self._fetch("/bounce-rate-trend", params) or []
        return [self._parse("/bounce-rate-trend", BounceTrendPoint, r) for r in rows]

    # =========================================================================
    # REALTIME
    # =========================================================================

    async def get_realtime_metrics(self, site_id: str) -> RealtimeData:
        """Live visitor counters for the status indicator."""
        data = await self._fetch("/realtime", {"siteId": site_id})
        return self._parse("/realtime", RealtimeData, data or {})
