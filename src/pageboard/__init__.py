"""
Server-rendered web analytics dashboard.

Usage:
    from pageboard import setup_dashboard

    dashboard = setup_dashboard(
        api_base_url="https://stats.example.com",
        default_site_id="site_123",
        timezone="Europe/Berlin",
    )

    # Include dashboard routes
    app.include_router(dashboard.router, prefix="/admin/analytics")

    # Optional background realtime polling, e.g. from the app lifespan
    await dashboard.start()
    ...
    await dashboard.close()
"""

from .config import ChartColors, ConfigError, DashboardConfig
from .core.client import AnalyticsAPIError, AnalyticsClient
from .dashboard import DashboardOrchestrator
from .preferences import Preferences, open_store
from .routes import create_dashboard_router

__version__ = "0.1.0"
__all__ = [
    "setup_dashboard",
    "Dashboard",
    "DashboardConfig",
    "ChartColors",
    "ConfigError",
    "AnalyticsClient",
    "AnalyticsAPIError",
    "DashboardOrchestrator",
]


class Dashboard:
    """Main dashboard interface for a host application."""

    def __init__(self, config: DashboardConfig):
        self.config = config
        self.client = AnalyticsClient(config.api_base_url, timeout=config.request_timeout_seconds)
        self.preferences = Preferences(open_store(config.preferences_path))
        self.router = create_dashboard_router(config, client=self.client, preferences=self.preferences)
        self._orchestrator: DashboardOrchestrator | None = None

    def orchestrator(self) -> DashboardOrchestrator:
        """Long-lived dashboard state sharing this instance's client and preferences."""
        if self._orchestrator is None:
            self._orchestrator = DashboardOrchestrator(self.client, self.config, preferences=self.preferences)
        return self._orchestrator

    async def start(self):
        """Load data once and start realtime polling for the active site."""
        return await self.orchestrator().start()

    async def close(self) -> None:
        if self._orchestrator is not None:
            await self._orchestrator.close()


def setup_dashboard(
    api_base_url: str,
    default_site_id: str | None = None,
    timezone: str = "UTC",
    preferences_path: str | None = None,
    **options,
) -> Dashboard:
    """
    Set up the analytics dashboard.

    Args:
        api_base_url: Origin of the analytics API (e.g., "https://stats.example.com")
        default_site_id: Site shown until the user picks another one
        timezone: IANA timezone used to bucket timestamps
        preferences_path: JSON file for favorites, notes and the active site.
                          Preferences are kept in memory when omitted.
        **options: Any other DashboardConfig field

    Returns:
        Dashboard instance with router, start() and close()

    Raises:
        ConfigError: If the configuration is invalid
    """
    config = DashboardConfig(
        api_base_url=api_base_url,
        default_site_id=default_site_id,
        timezone=timezone,
        preferences_path=preferences_path,
        **options,
    )
    return Dashboard(config)
