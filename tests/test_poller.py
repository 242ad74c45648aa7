"""Tests for the background refresh timer."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from rss_reader.poller import RefreshScheduler, refresh_loop


@pytest.mark.asyncio
async def test_scheduler_starts_with_configured_interval(reader):
    reader.set_update_time(30)
    scheduler = RefreshScheduler(reader)

    scheduler.start()
    try:
        assert scheduler.interval == 30
        assert scheduler.running
    finally:
        scheduler.stop()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_zero_interval_disables_timer(reader):
    reader.set_update_time(0)
    scheduler = RefreshScheduler(reader)

    scheduler.start()

    assert scheduler.interval == 0
    assert not scheduler.running
    scheduler.stop()


@pytest.mark.asyncio
async def test_interval_change_reschedules(reader):
    reader.set_update_time(30)
    scheduler = RefreshScheduler(reader)
    scheduler.start()
    first_task = scheduler._task

    reader.set_update_time(5)
    await asyncio.sleep(0)

    assert scheduler.interval == 5
    assert scheduler.running
    assert scheduler._task is not first_task

    reader.set_update_time(0)
    await asyncio.sleep(0)

    assert scheduler.interval == 0
    assert not scheduler.running
    scheduler.stop()


@pytest.mark.asyncio
async def test_unrelated_changes_keep_timer(reader):
    reader.set_update_time(30)
    scheduler = RefreshScheduler(reader)
    scheduler.start()
    task = scheduler._task

    reader.add_filter("Unread", "UNREAD")
    await asyncio.sleep(0)

    assert scheduler._task is task
    scheduler.stop()


@pytest.mark.asyncio
async def test_refresh_loop_survives_failed_cycles():
    reader = AsyncMock()
    reader.refresh.side_effect = [RuntimeError("disk gone"), None, asyncio.CancelledError()]

    with patch("rss_reader.poller.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(asyncio.CancelledError):
            await refresh_loop(reader, 1)

    assert reader.refresh.await_count == 3
