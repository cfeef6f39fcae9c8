"""Tests for the realtime poller."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pageboard.core.client import AnalyticsAPIError
from pageboard.core.models import ConnectionStatus, RealtimeData
from pageboard.realtime import RealtimePoller


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def make_client(active: int = 3):
    client = MagicMock()
    client.get_realtime_metrics = AsyncMock(return_value=RealtimeData(active_visitors=active, pageviews_last_24h=40))
    return client


class TestPollOnce:
    """Single fetch and status transitions."""

    def test_starts_connecting(self):
        assert RealtimePoller(make_client(), "site-1").status == ConnectionStatus.CONNECTING

    def test_success_connects(self):
        poller = RealtimePoller(make_client(), "site-1")

        data = run_async(poller.poll_once())

        assert data.active_visitors == 3
        assert poller.status == ConnectionStatus.CONNECTED
        assert poller.last_updated is not None

    def test_failure_sets_error_without_raising(self):
        client = make_client()
        client.get_realtime_metrics = AsyncMock(side_effect=AnalyticsAPIError("/realtime", "timeout"))
        poller = RealtimePoller(client, "site-1")

        assert run_async(poller.poll_once()) is None
        assert poller.status == ConnectionStatus.ERROR
        assert "timeout" in poller.last_error

    def test_recovers_after_error(self):
        client = make_client()
        client.get_realtime_metrics = AsyncMock(side_effect=[
            AnalyticsAPIError("/realtime", "timeout"),
            RealtimeData(active_visitors=1),
        ])
        poller = RealtimePoller(client, "site-1")

        run_async(poller.poll_once())
        run_async(poller.poll_once())

        assert poller.status == ConnectionStatus.CONNECTED
        assert poller.last_error is None

    def test_no_site_does_nothing(self):
        client = make_client()
        poller = RealtimePoller(client)

        assert run_async(poller.poll_once()) is None
        client.get_realtime_metrics.assert_not_awaited()

    def test_result_for_previous_site_discarded(self):
        client = make_client()
        poller = RealtimePoller(client, "site-1")

        async def switch(site_id):
            poller.site_id = "site-2"
            return RealtimeData(active_visitors=99)

        client.get_realtime_metrics = AsyncMock(side_effect=switch)

        assert run_async(poller.poll_once()) is None
        assert poller.data is None


class TestLoop:
    """At most one polling loop per poller."""

    def test_start_twice_keeps_one_loop(self):
        async def scenario():
            poller = RealtimePoller(make_client(), "site-1", interval=60)
            poller.start()
            first = poller._task
            poller.start()
            same = poller._task is first
            await poller.stop()
            return same, poller.running

        same, running = run_async(scenario())

        assert same
        assert not running

    def test_start_without_site_is_noop(self):
        async def scenario():
            poller = RealtimePoller(make_client())
            poller.start()
            return poller.running

        assert run_async(scenario()) is False

    def test_loop_polls_immediately(self):
        async def scenario():
            client = make_client()
            poller = RealtimePoller(client, "site-1", interval=60)
            poller.start()
            await asyncio.sleep(0.01)
            await poller.stop()
            return client.get_realtime_metrics.await_count, poller.status

        count, status = run_async(scenario())

        assert count == 1
        assert status == ConnectionStatus.CONNECTED

    def test_restart_switches_site(self):
        async def scenario():
            client = make_client()
            poller = RealtimePoller(client, "site-1", interval=60)
            poller.start()
            old_task = poller._task
            await asyncio.sleep(0.01)

            await poller.restart("site-2")
            await asyncio.sleep(0.01)
            result = (old_task.cancelled(), poller.running, poller.site_id, client.get_realtime_metrics.await_args)
            await poller.stop()
            return result

        old_cancelled, running, site_id, last_call = run_async(scenario())

        assert old_cancelled
        assert running
        assert site_id == "site-2"
        assert last_call.args == ("site-2",)

    def test_overlapping_restarts_end_on_latest_site(self):
        """Two site switches in flight leave one loop polling the last site."""
        async def scenario():
            client = make_client()
            poller = RealtimePoller(client, "site-1", interval=60)
            poller.start()
            await asyncio.sleep(0.01)

            await asyncio.gather(poller.restart("site-A"), poller.restart("site-B"))
            await asyncio.sleep(0.01)
            tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
            result = (poller.site_id, poller.running, len(tasks), client.get_realtime_metrics.await_args)
            await poller.stop()
            return result

        site_id, running, live_tasks, last_call = run_async(scenario())

        assert site_id == "site-B"
        assert running
        assert live_tasks == 1
        assert last_call.args == ("site-B",)

    def test_set_site_resets_data(self):
        poller = RealtimePoller(make_client(), "site-1")
        run_async(poller.poll_once())

        poller.set_site("site-2")

        assert poller.data is None
        assert poller.status == ConnectionStatus.CONNECTING

    def test_stop_when_not_running(self):
        run_async(RealtimePoller(make_client(), "site-1").stop())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
