"""
Dashboard routes for pageboard.

Uses Jinja2 templates for rendering, supports HTMX partial loading.
"""

import logging
from datetime import date
from pathlib import Path

from fastapi import APIRouter, Form, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from ..charts import bar, choropleth, line, pie
from ..config import DashboardConfig
from ..core.client import AnalyticsClient
from ..core.models import DateRange, Granularity
from ..core.bucketing import select_granularity
from ..dashboard import TREND_METRICS, DashboardOrchestrator
from ..export import EXPORT_KINDS, export_filename, to_csv
from ..formatting import format_change, format_duration, format_percent, format_value
from ..navigation import QueryStringNavigation
from ..preferences import Preferences, open_store
from ..realtime import RealtimePoller

logger = logging.getLogger(__name__)

# First day of data for the "all" preset
ALL_TIME_START = date(2020, 1, 1)

PRESET_DAYS = {
    "24h": 1,
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "year": 365,
}

CHART_TITLES = {
    "pageviews": "Pageviews",
    "visitors": "Unique visitors",
    "bounceRate": "Bounced vs. engaged sessions",
}


def _parse_date_range(
    period: str | None = None,
    custom_start: str | None = None,
    custom_end: str | None = None,
    default_days: int = 7,
    max_days: int | None = None,
    today: date | None = None,
) -> DateRange:
    """Parse a preset period or custom from/to dates into a DateRange.

    Args:
        period: Preset period string (today, 24h, 7d, 30d, 90d, year, all, custom)
        custom_start: Custom start date in YYYY-MM-DD format
        custom_end: Custom end date in YYYY-MM-DD format
        default_days: Range length when neither a preset nor dates are given
        max_days: Longest allowed custom range
        today: Reference date (defaults to date.today())

    Returns:
        DateRange covering whole days

    Raises:
        HTTPException: If custom dates are invalid
    """
    today = today or date.today()

    # Handle custom date range
    if period == "custom" or custom_start or custom_end:
        if not custom_start or not custom_end:
            raise HTTPException(
                status_code=400,
                detail="Both start and end dates are required for custom date range"
            )

        try:
            start = date.fromisoformat(custom_start)
            end = date.fromisoformat(custom_end)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail="Invalid date format. Use YYYY-MM-DD (e.g., 2024-01-15)"
            ) from None

        # Validate date range
        if end < start:
            raise HTTPException(
                status_code=400,
                detail="End date must be on or after start date"
            )

        if end > today:
            raise HTTPException(
                status_code=400,
                detail="End date cannot be in the future"
            )

        if max_days is not None and (end - start).days > max_days:
            raise HTTPException(
                status_code=400,
                detail=f"Date range cannot exceed {max_days} days"
            )

        return DateRange.from_dates(start, end)

    # Handle preset periods
    if period == "today":
        return DateRange.from_dates(today, today)
    if period in PRESET_DAYS:
        return DateRange.last_days(PRESET_DAYS[period], today)
    if period == "all":
        return DateRange.from_dates(ALL_TIME_START, today)

    return DateRange.last_days(default_days, today)


def create_dashboard_router(
    config: DashboardConfig,
    client: AnalyticsClient | None = None,
    preferences: Preferences | None = None,
) -> APIRouter:
    """Create dashboard router with Jinja2 templates.

    Args:
        config: Dashboard configuration
        client: API client (built from config when omitted)
        preferences: Preference store wrapper (built from config when omitted)
    """
    router = APIRouter(tags=["analytics"])

    # Set up templates
    template_dir = Path(__file__).parent.parent / "templates"
    templates = Jinja2Templates(directory=str(template_dir))

    # Add custom filters
    templates.env.filters["format_duration"] = format_duration
    templates.env.filters["format_change"] = format_change
    templates.env.filters["format_value"] = format_value
    templates.env.filters["format_percent"] = format_percent

    if client is None:
        client = AnalyticsClient(config.api_base_url, timeout=config.request_timeout_seconds)
    if preferences is None:
        preferences = Preferences(open_store(config.preferences_path))

    # Shared across requests so the status indicator survives between polls
    poller = RealtimePoller(client, interval=config.realtime_interval_seconds)

    def _orchestrator(
        request: Request,
        period: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> DashboardOrchestrator:
        """Dashboard state for one request, seeded from its query string."""
        orchestrator = DashboardOrchestrator(
            client,
            config,
            preferences=preferences,
            navigation=QueryStringNavigation(str(request.query_params)),
            poller=poller,
        )
        if not period or period == "custom":
            start = start or request.query_params.get("from")
            end = end or request.query_params.get("to")
        else:
            # A preset overrides the from/to carried over in the URL
            start = end = None
        date_range = _parse_date_range(
            period, start, end,
            default_days=config.default_range_days,
            max_days=config.max_range_days,
        )
        try:
            orchestrator.set_date_range(date_range)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from None
        return orchestrator

    def _get_common_context(request: Request, orchestrator: DashboardOrchestrator, period: str | None) -> dict:
        """Build common template context."""
        return {
            "site_name": config.effective_display_name,
            "site_id": orchestrator.site_id,
            "site_timezone": config.timezone,
            "config": config,
            "chart_css": config.chart_colors.to_css(),
            "date_range_key": period or "",
            "start_date": orchestrator.date_range.start.date().isoformat(),
            "end_date": orchestrator.date_range.end.date().isoformat(),
            "url_state": orchestrator.url_state,
            "query_string": orchestrator.navigation.query_string,
            "density": orchestrator.density,
            "comparison": orchestrator.comparison,
            "favorites": orchestrator.favorites,
            "notes": orchestrator.notes,
        }

    def _countries_context(orchestrator: DashboardOrchestrator) -> dict:
        rows, summary = orchestrator.ranked_countries()
        return {
            "map_svg": choropleth.render(
                orchestrator.map_data(),
                orchestrator.selection,
                query=orchestrator.navigation.query_string,
                low=config.chart_colors.map_low,
                high=config.chart_colors.map_high,
            ),
            "ranked_countries": rows,
            "country_summary": summary,
            "selection": orchestrator.selection,
        }

    async def _chart_context(orchestrator: DashboardOrchestrator, metric: str) -> dict:
        colors = config.chart_colors
        if metric == "pageviews":
            granularity = select_granularity(orchestrator.date_range)
        else:
            # Trend endpoints aggregate hourly or daily server-side
            granularity = Granularity.HOUR if orchestrator.date_range.is_single_day else Granularity.DAY
        series = await orchestrator.load_trend(metric)
        if metric == "bounceRate":
            svg = bar.render_stacked(
                series or [],
                colors=(colors.bounce, colors.engaged),
                title=CHART_TITLES[metric],
                granularity=granularity,
            )
        else:
            svg = line.render(
                series or [],
                color=colors.pageviews if metric == "pageviews" else colors.visitors,
                title=CHART_TITLES[metric],
                granularity=granularity,
            )
        return {
            "chart_metric": metric,
            "chart_svg": svg,
            "chart_metrics": TREND_METRICS,
            "chart_titles": CHART_TITLES,
        }

    def _realtime_context() -> dict:
        return {
            "realtime": poller.data,
            "realtime_status": poller.status.value,
            "realtime_updated": poller.last_updated,
            "realtime_interval": int(config.realtime_interval_seconds),
        }

    # -------------------------------------------------------------------------
    # Dashboard Routes
    # -------------------------------------------------------------------------

    @router.get("/", response_class=HTMLResponse, name="dashboard_page")
    async def dashboard_page(
        request: Request,
        period: str | None = None,
        start: str | None = Query(None, description="Custom start date (YYYY-MM-DD)"),
        end: str | None = Query(None, description="Custom end date (YYYY-MM-DD)"),
        q: str = "",
    ):
        """Render the dashboard page."""
        orchestrator = _orchestrator(request, period, start, end)
        orchestrator.search(q)
        snapshot = await orchestrator.refresh()

        context = _get_common_context(request, orchestrator, period)
        context.update({
            "snapshot": snapshot,
            "error": orchestrator.error,
            "metrics": snapshot.metrics if snapshot else None,
            "search_query": orchestrator.search_query,
            "top_pages": orchestrator.series("top-pages"),
            "referrers": orchestrator.series("referrers"),
            "browsers": orchestrator.series("browsers"),
            "operating_systems": orchestrator.series("operating-systems"),
            "devices": orchestrator.series("devices"),
            "browsers_svg": pie.render(orchestrator.series("browsers"), title="Browsers",
                                       colors=config.chart_colors.series()),
            "devices_svg": pie.render(orchestrator.series("devices"), title="Devices",
                                      colors=config.chart_colors.series()),
            "referrers_svg": bar.render(orchestrator.series("referrers"), color=config.chart_colors.pageviews,
                                        title="Referrers", horizontal=True),
            "export_kinds": EXPORT_KINDS,
        })
        if snapshot:
            context.update(await _chart_context(orchestrator, "pageviews"))
        context.update(_countries_context(orchestrator))
        context.update(_realtime_context())

        return templates.TemplateResponse(request, "pages/dashboard.html", context)

    @router.get("/partials/chart", response_class=HTMLResponse)
    async def chart_partial(
        request: Request,
        metric: str = "pageviews",
        period: str | None = None,
        start: str | None = Query(None, description="Custom start date (YYYY-MM-DD)"),
        end: str | None = Query(None, description="Custom end date (YYYY-MM-DD)"),
    ):
        """HTMX partial for the chart metric tabs (pageviews, visitors, bounceRate)."""
        if metric not in TREND_METRICS:
            metric = "pageviews"

        orchestrator = _orchestrator(request, period, start, end)
        context = _get_common_context(request, orchestrator, period)
        context.update(await _chart_context(orchestrator, metric))
        context["error"] = orchestrator.error

        return templates.TemplateResponse(
            request, "partials/chart.html", context,
            headers={"Cache-Control": "private, max-age=60"},
        )

    @router.get("/partials/countries", response_class=HTMLResponse)
    async def countries_partial(
        request: Request,
        period: str | None = None,
        start: str | None = Query(None, description="Custom start date (YYYY-MM-DD)"),
        end: str | None = Query(None, description="Custom end date (YYYY-MM-DD)"),
        select: str | None = None,
        clear: bool = False,
    ):
        """HTMX partial for the world map and ranked country list."""
        orchestrator = _orchestrator(request, period, start, end)
        await orchestrator.refresh()

        if select:
            orchestrator.select_country(select.upper())
        if clear:
            orchestrator.clear_selection()

        context = _get_common_context(request, orchestrator, period)
        context.update(_countries_context(orchestrator))
        context["error"] = orchestrator.error
        return templates.TemplateResponse(request, "partials/countries.html", context)

    @router.get("/partials/realtime", response_class=HTMLResponse)
    async def realtime_partial(request: Request):
        """HTMX partial polled every interval for live visitors."""
        site_id = preferences.active_site_id or config.default_site_id
        poller.set_site(site_id)
        await poller.poll_once()
        context = _realtime_context()
        return templates.TemplateResponse(
            request, "partials/realtime.html", context,
            headers={"Cache-Control": "no-store"},
        )

    # -------------------------------------------------------------------------
    # Export Routes
    # -------------------------------------------------------------------------

    @router.get("/export/{kind}.csv")
    async def export_csv(
        request: Request,
        kind: str,
        period: str | None = None,
        start: str | None = Query(None, description="Custom start date (YYYY-MM-DD)"),
        end: str | None = Query(None, description="Custom end date (YYYY-MM-DD)"),
        q: str = "",
    ):
        """Export a table as CSV."""
        if kind not in EXPORT_KINDS:
            raise HTTPException(status_code=404, detail=f"Unknown export: {kind}")

        orchestrator = _orchestrator(request, period, start, end)
        orchestrator.search(q)
        snapshot = await orchestrator.refresh()
        if snapshot is None:
            raise HTTPException(status_code=502, detail=orchestrator.error or "Analytics API unavailable")

        content = to_csv(orchestrator.export_rows(kind))
        if content is None:
            return Response(status_code=204)

        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export_filename(kind)}"},
        )

    # -------------------------------------------------------------------------
    # Preference Routes
    # -------------------------------------------------------------------------

    def _back(request: Request) -> RedirectResponse:
        url = str(request.url_for("dashboard_page"))
        referer = request.headers.get("referer")
        if referer and referer.startswith(url):
            url = referer
        return RedirectResponse(url=url, status_code=303)

    @router.post("/notes")
    async def add_note(
        request: Request,
        note_date: str = Form(..., alias="date"),
        content: str = Form(...),
    ):
        """Attach a note to a date."""
        try:
            date.fromisoformat(note_date)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail="Invalid date format. Use YYYY-MM-DD (e.g., 2024-01-15)"
            ) from None
        content = content.strip()
        if not content:
            raise HTTPException(status_code=400, detail="Note content is required")
        preferences.add_note(note_date, content)
        return _back(request)

    @router.post("/notes/{note_id}/delete")
    async def delete_note(request: Request, note_id: str):
        """Delete a note."""
        if not preferences.delete_note(note_id):
            raise HTTPException(status_code=404, detail="Note not found")
        return _back(request)

    @router.post("/favorites/toggle")
    async def toggle_favorite(
        request: Request,
        favorite_id: str = Form(..., alias="id"),
        name: str = Form(...),
        section: str = Form(""),
        value: str = Form(""),
    ):
        """Pin or unpin a metric."""
        preferences.toggle_favorite(favorite_id, name, section, value)
        return _back(request)

    @router.post("/sites/select")
    async def select_site(request: Request, site_id: str = Form(...)):
        """Switch the active site."""
        site_id = site_id.strip()
        if not site_id:
            raise HTTPException(status_code=400, detail="Site id is required")
        preferences.active_site_id = site_id
        logger.info(f"Active site changed to {site_id}")
        return _back(request)

    return router
