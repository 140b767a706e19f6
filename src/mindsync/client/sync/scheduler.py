"""Scheduler for automatic sync.

This module provides:
- AutoSyncScheduler: Fires TIMER sync requests at a fixed interval
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mindsync.client.sync.types import TriggerSource
from mindsync.core.config import DEFAULT_AUTO_SYNC_INTERVAL_MINUTES

if TYPE_CHECKING:
    from mindsync.client.sync.triggers import SyncRequestCoordinator

logger = logging.getLogger(__name__)

AUTO_SYNC_JOB_ID = "auto_sync"


class AutoSyncScheduler:
    """Periodic auto-sync through the request coordinator.

    The scheduler must be started from a running event loop.
    """

    def __init__(
        self,
        requests: SyncRequestCoordinator,
        interval_minutes: int = DEFAULT_AUTO_SYNC_INTERVAL_MINUTES,
    ) -> None:
        """Initialize the scheduler.

        Args:
            requests: Request coordinator receiving TIMER triggers.
            interval_minutes: Minutes between two automatic syncs.
        """
        self._requests = requests
        self._interval_minutes = interval_minutes
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def is_enabled(self) -> bool:
        return self._scheduler is not None and self._scheduler.get_job(AUTO_SYNC_JOB_ID) is not None

    async def _sync_job(self) -> None:
        """Job function for scheduled sync."""
        logger.debug("Auto-sync timer fired")
        try:
            await self._requests.request(TriggerSource.TIMER)
        except Exception:
            logger.exception("Error during scheduled sync")

    def start(self) -> None:
        """Start the scheduler without any job."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler()
        self._scheduler.start()

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Auto-sync scheduler stopped")

    def enable(self, interval_minutes: int | None = None) -> None:
        """Schedule automatic sync, replacing any previous schedule.

        Args:
            interval_minutes: New interval; keeps the current one if None.
        """
        if interval_minutes is not None:
            if interval_minutes < 1:
                raise ValueError("interval_minutes must be at least 1")
            self._interval_minutes = interval_minutes

        self.start()
        self._scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=AUTO_SYNC_JOB_ID,
            name="Automatic sync",
            replace_existing=True,
        )
        logger.info("Auto-sync enabled (every %d minutes)", self._interval_minutes)

    def disable(self) -> None:
        """Remove the automatic sync job."""
        if self.is_enabled:
            self._scheduler.remove_job(AUTO_SYNC_JOB_ID)
            logger.info("Auto-sync disabled")
