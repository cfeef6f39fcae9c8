"""
Configuration for pageboard.
"""
import logging
import os
import warnings
from dataclasses import dataclass, field
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .charts.base import DEFAULT_COLORS

logger = logging.getLogger(__name__)

ENV_PREFIX = "PAGEBOARD_"

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class ConfigError(ValueError):
    """Raised when the dashboard configuration is invalid."""
    pass


@dataclass
class ChartColors:
    """Chart palette overrides.

    All colors should be valid CSS color values. `series` colors are used in
    order for pie slices and multi-series charts.

    Usage:
        colors = ChartColors(pageviews="#0ea5e9", bounce="#f97316")
        config = DashboardConfig(..., chart_colors=colors)
    """

    pageviews: str = "#3b82f6"
    visitors: str = "#10b981"
    bounce: str = "#ef4444"
    engaged: str = "#3b82f6"
    map_low: str = "#f3ebff"
    map_high: str = "#6366f1"
    palette: list[str] = field(default_factory=lambda: list(DEFAULT_COLORS))

    def series(self) -> list[str]:
        """Palette for categorical charts, never empty."""
        return self.palette or list(DEFAULT_COLORS)

    def to_css(self) -> str:
        """Convert chart colors to CSS variable declarations."""
        mappings = {
            "pageviews": "--pb-color-pageviews",
            "visitors": "--pb-color-visitors",
            "bounce": "--pb-color-bounce",
            "engaged": "--pb-color-engaged",
            "map_low": "--pb-color-map-low",
            "map_high": "--pb-color-map-high",
        }
        css_vars = [f"{css_var}: {getattr(self, attr)};" for attr, css_var in mappings.items()]
        return "\n            ".join(css_vars)


@dataclass
class DashboardConfig:
    """Configuration for one dashboard instance."""

    # Required
    api_base_url: str  # Analytics API origin (e.g., "https://stats.example.com")

    # Display settings
    default_site_id: str | None = None
    display_name: str | None = None
    timezone: str = "UTC"  # Site timezone for bucketing

    # Date ranges
    default_range_days: int = 7
    max_range_days: int = 3650

    # Polling and requests
    realtime_interval_seconds: float = 10
    request_timeout_seconds: float = 30

    # Tables
    top_limit: int = 10

    # Preferences file; in-memory when unset
    preferences_path: str | None = None

    chart_colors: ChartColors = field(default_factory=ChartColors)

    @property
    def effective_display_name(self) -> str:
        return self.display_name or "Analytics"

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.api_base_url = (self.api_base_url or "").rstrip("/")
        self._validate_url()
        self._validate_timezone()
        self._validate_numbers()

    def _validate_url(self) -> None:
        if not self.api_base_url:
            raise ConfigError("api_base_url is required")
        parsed = urlparse(self.api_base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"api_base_url must be an http(s) URL, got {self.api_base_url!r}")
        if parsed.scheme != "https" and parsed.hostname not in _LOCAL_HOSTS:
            warnings.warn(
                f"api_base_url {self.api_base_url} is not using https. "
                f"Analytics data will be fetched in cleartext.",
                UserWarning,
                stacklevel=3,
            )

    def _validate_timezone(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown timezone: {self.timezone!r}") from None

    def _validate_numbers(self) -> None:
        if self.default_range_days < 0:
            raise ConfigError("default_range_days must be >= 0")
        if self.max_range_days < 1:
            raise ConfigError("max_range_days must be >= 1")
        if self.default_range_days > self.max_range_days:
            raise ConfigError("default_range_days cannot exceed max_range_days")
        if self.realtime_interval_seconds <= 0:
            raise ConfigError("realtime_interval_seconds must be positive")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("request_timeout_seconds must be positive")
        if self.top_limit < 1:
            raise ConfigError("top_limit must be >= 1")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "DashboardConfig":
        """Build a config from PAGEBOARD_* environment variables.

        Keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values = {
            "api_base_url": env.get(f"{ENV_PREFIX}API_BASE_URL", ""),
            "default_site_id": env.get(f"{ENV_PREFIX}DEFAULT_SITE_ID") or None,
            "preferences_path": env.get(f"{ENV_PREFIX}PREFERENCES_PATH") or None,
        }
        if env.get(f"{ENV_PREFIX}TIMEZONE"):
            values["timezone"] = env[f"{ENV_PREFIX}TIMEZONE"]
        values.update(overrides)
        logger.debug(f"Loading dashboard config for {values['api_base_url'] or '<unset>'}")
        return cls(**values)
