"""Tests for the analytics API client."""

import asyncio
from datetime import date, datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from pageboard.core.client import AnalyticsAPIError, AnalyticsClient
from pageboard.core.models import DateRange, RealtimeData

RANGE = DateRange.from_dates(date(2026, 1, 1), date(2026, 1, 7))


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _client_with(handler) -> AnalyticsClient:
    return AnalyticsClient("https://stats.example.com", transport=httpx.MockTransport(handler))


class TestRequests:
    """URL and query parameter shaping."""

    def test_event_endpoints_send_full_timestamps(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[])

        run_async(_client_with(handler).get_pageviews("site-1", RANGE))

        assert seen["path"] == "/api/analytics/pageviews"
        assert seen["params"]["siteId"] == "site-1"
        assert seen["params"]["startDate"] == "2026-01-01T00:00:00"
        assert seen["params"]["endDate"] == "2026-01-07T23:59:59.999999"

    def test_session_endpoints_send_dates_only(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"bounceRate": 42.5})

        result = run_async(_client_with(handler).get_bounce_rate("site-1", RANGE))

        assert result == 42.5
        assert seen["params"]["startDate"] == "2026-01-01"
        assert seen["params"]["endDate"] == "2026-01-07"

    def test_limit_passed_for_top_pages(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"path": "/", "_count": {"id": 3}}])

        rows = run_async(_client_with(handler).get_top_pages("site-1", RANGE, limit=5))

        assert seen["params"]["limit"] == "5"
        assert rows[0]["path"] == "/"

    def test_trend_interval_param(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"date": "2026-01-01T00:00:00", "uniqueVisitors": 7}])

        rows = run_async(_client_with(handler).get_visitors_trend("site-1", RANGE, interval="hour"))

        assert seen["path"] == "/api/analytics/visitors-trend"
        assert seen["params"]["interval"] == "hour"
        assert rows[0].unique_visitors == 7

    def test_trailing_slash_in_base_url(self):
        client = AnalyticsClient("https://stats.example.com/")
        assert client.base_url == "https://stats.example.com"


class TestErrors:
    """Transport and HTTP failures become AnalyticsAPIError."""

    def test_non_2xx_raises(self):
        client = _client_with(lambda request: httpx.Response(500))

        with pytest.raises(AnalyticsAPIError) as exc_info:
            run_async(client.get_unique_visitors("site-1", RANGE))

        assert exc_info.value.status_code == 500
        assert exc_info.value.endpoint == "/visitors"
        assert "Failed to fetch /visitors" in str(exc_info.value)

    def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AnalyticsAPIError) as exc_info:
            run_async(_client_with(handler).get_countries("site-1", RANGE))

        assert exc_info.value.status_code is None

    def test_invalid_json_raises(self):
        client = _client_with(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(AnalyticsAPIError):
            run_async(client.get_referrers("site-1", RANGE))

    def test_malformed_pageview_rows_raise(self):
        client = AnalyticsClient("https://stats.example.com")
        client._fetch = AsyncMock(return_value=[{"createdAt": "2026-01-01T00:00:00"}])

        with pytest.raises(AnalyticsAPIError):
            run_async(client.get_pageviews("site-1", RANGE))


class TestParsing:
    """Response parsing with a mocked _fetch."""

    def _get_client(self):
        return AnalyticsClient("https://stats.example.com")

    def test_pageviews_parsed(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value=[
            {"createdAt": "2026-01-01T09:00:00", "_count": {"id": 3}},
            {"createdAt": "2026-01-01T14:00:00", "_count": {"id": 5}},
        ])

        points = run_async(client.get_pageviews("site-1", RANGE))

        assert [p.count for p in points] == [3, 5]
        assert points[0].timestamp == datetime(2026, 1, 1, 9)

    def test_unique_visitors_defaults_to_zero(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value={})

        assert run_async(client.get_unique_visitors("site-1", RANGE)) == 0

    def test_bounce_rate_missing_is_none(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value={"bounceRate": None})

        assert run_async(client.get_bounce_rate("site-1", RANGE)) is None

    def test_session_duration_converted_to_seconds(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value={"averageSessionDuration": 125000})

        assert run_async(client.get_avg_session_duration("site-1", RANGE)) == 125.0

    def test_browser_stats_fill_missing_keys(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value={"browsers": [{"browser": "Chrome", "_count": {"id": 1}}]})

        stats = run_async(client.get_browser_stats("site-1", RANGE))

        assert stats["os"] == []
        assert stats["devices"] == []
        assert stats["browsers"][0]["browser"] == "Chrome"

    def test_realtime_aliases(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value={
            "activeVisitors": 4,
            "pageviewsLast24h": 120,
            "topPagesRealTime": [{"path": "/", "count": 2}],
        })

        data = run_async(client.get_realtime_metrics("site-1"))

        assert isinstance(data, RealtimeData)
        assert data.active_visitors == 4
        assert data.pageviews_last_24h == 120
        client._fetch.assert_awaited_once_with("/realtime", {"siteId": "site-1"})

    def test_bounce_trend_parsed(self):
        client = self._get_client()
        client._fetch = AsyncMock(return_value=[
            {"date": "2026-01-02T00:00:00", "bounceSessions": 2, "totalSessions": 5},
        ])

        rows = run_async(client.get_bounce_rate_trend("site-1", RANGE))

        assert rows[0].bounce_sessions == 2
        assert rows[0].total_sessions == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
