"""
Periodic polling of the realtime endpoint.

One RealtimePoller runs at most one polling loop. Changing sites means
stopping the old loop before a new one starts; restart() does both.
"""
import asyncio
import logging
from datetime import datetime

from pydantic import ValidationError

from .core.client import AnalyticsAPIError, AnalyticsClient
from .core.models import ConnectionStatus, RealtimeData

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0


class RealtimePoller:
    """Polls live visitor counts for one site at a fixed interval."""

    def __init__(
        self,
        client: AnalyticsClient,
        site_id: str | None = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.client = client
        self.site_id = site_id
        self.interval = interval
        self.data: RealtimeData | None = None
        self.status = ConnectionStatus.CONNECTING
        self.last_updated: datetime | None = None
        self.last_error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> RealtimeData | None:
        """Fetch once and update status. Failures set ERROR, never raise."""
        if not self.site_id:
            return None
        site_id = self.site_id
        try:
            data = await self.client.get_realtime_metrics(site_id)
        except (AnalyticsAPIError, ValidationError) as exc:
            self.status = ConnectionStatus.ERROR
            self.last_error = str(exc)
            logger.warning(f"Realtime poll failed for {site_id}: {exc}")
            return None
        if site_id != self.site_id:
            # Site changed while the request was in flight
            logger.debug(f"Discarding realtime result for previous site {site_id}")
            return None
        self.data = data
        self.status = ConnectionStatus.CONNECTED
        self.last_updated = datetime.now()
        self.last_error = None
        return data

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start polling. No-op if a loop is already running or no site is set."""
        if self.running or not self.site_id:
            return
        self.status = ConnectionStatus.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Realtime polling started for {self.site_id} every {self.interval}s")

    async def stop(self) -> None:
        """Cancel the polling loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Realtime polling stopped for {self.site_id}")

    def set_site(self, site_id: str | None) -> None:
        """Point the poller at another site and forget the old site's data."""
        if site_id == self.site_id:
            return
        self.site_id = site_id
        self.data = None
        self.last_updated = None
        self.last_error = None
        self.status = ConnectionStatus.CONNECTING

    async def restart(self, site_id: str | None) -> None:
        """Switch to another site: stop the old loop, then start a new one.

        The site is switched before awaiting stop(), so an overlapping
        restart never resumes with an older site than the latest one.
        """
        self.set_site(site_id)
        await self.stop()
        self.start()
