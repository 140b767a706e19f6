"""Tests for AutoSyncScheduler."""

from unittest.mock import AsyncMock

import pytest

from mindsync.client.sync import AutoSyncScheduler, TriggerSource
from mindsync.client.sync.scheduler import AUTO_SYNC_JOB_ID


@pytest.fixture
def requests() -> AsyncMock:
    """Request coordinator stub."""
    return AsyncMock()


class TestAutoSyncScheduler:
    """Tests for periodic sync scheduling."""

    @pytest.mark.asyncio
    async def test_enable_adds_interval_job(self, requests: AsyncMock) -> None:
        scheduler = AutoSyncScheduler(requests, interval_minutes=15)

        scheduler.enable()
        try:
            assert scheduler.is_enabled
            job = scheduler._scheduler.get_job(AUTO_SYNC_JOB_ID)
            assert job.trigger.interval.total_seconds() == 15 * 60
        finally:
            scheduler.stop()

        assert not scheduler.is_enabled

    @pytest.mark.asyncio
    async def test_enable_replaces_interval(self, requests: AsyncMock) -> None:
        scheduler = AutoSyncScheduler(requests)

        scheduler.enable()
        scheduler.enable(interval_minutes=5)
        try:
            assert scheduler.interval_minutes == 5
            jobs = scheduler._scheduler.get_jobs()
            assert len(jobs) == 1
            assert jobs[0].trigger.interval.total_seconds() == 5 * 60
        finally:
            scheduler.stop()

    @pytest.mark.asyncio
    async def test_invalid_interval(self, requests: AsyncMock) -> None:
        scheduler = AutoSyncScheduler(requests)

        with pytest.raises(ValueError):
            scheduler.enable(interval_minutes=0)
        assert not scheduler.is_enabled

    @pytest.mark.asyncio
    async def test_disable_removes_job(self, requests: AsyncMock) -> None:
        scheduler = AutoSyncScheduler(requests)
        scheduler.enable()

        scheduler.disable()
        try:
            assert not scheduler.is_enabled
        finally:
            scheduler.stop()

    @pytest.mark.asyncio
    async def test_job_requests_timer_sync(self, requests: AsyncMock) -> None:
        scheduler = AutoSyncScheduler(requests)

        await scheduler._sync_job()

        requests.request.assert_awaited_once_with(TriggerSource.TIMER)

    @pytest.mark.asyncio
    async def test_job_errors_are_logged(self, requests: AsyncMock) -> None:
        """A failing request must not propagate out of the job."""
        requests.request.side_effect = RuntimeError("boom")
        scheduler = AutoSyncScheduler(requests)

        await scheduler._sync_job()

        requests.request.assert_awaited_once()
