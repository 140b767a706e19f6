"""Sync request arbitration.

This module provides:
- SyncRequestCoordinator: Filters trigger events before they reach the
  sync coordinator

Rules, checked in order:
1. A request while a sync runs is dropped (never queued)
2. Debounce: a request from a source seen less than `debounce` seconds
   ago is dropped, so bursts collapse into their first event
3. Throttle: TIMER syncs run at most once per `throttle` seconds
4. Cooldown: after any executed sync, automatic (LOW/NORMAL) requests
   are dropped for `cooldown` seconds

HIGH priority requests (MANUAL by default) skip rules 3 and 4.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from mindsync.client.sync.types import (
    DEFAULT_PRIORITIES,
    SyncError,
    SyncOutcome,
    TriggerPriority,
    TriggerSource,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 2.0  # seconds
DEFAULT_THROTTLE = 60.0  # seconds
DEFAULT_COOLDOWN = 30.0  # seconds


class SyncEngine(Protocol):
    """What the request coordinator needs from the sync coordinator."""

    @property
    def is_syncing(self) -> bool: ...

    async def sync(self, silent: bool = False) -> SyncOutcome: ...


class RequestStatus(Enum):
    """What happened to a sync request."""

    EXECUTED = "executed"
    BUSY = "busy"
    DEBOUNCED = "debounced"
    THROTTLED = "throttled"
    COOLDOWN = "cooldown"


@dataclass
class SyncRequestResult:
    """Result of a sync request.

    Attributes:
        source: Trigger that requested the sync.
        status: Whether the sync ran, and why not.
        outcome: Sync outcome when executed and no call-scoped error occurred.
        error: Call-scoped error raised by the sync, if any.
    """

    source: TriggerSource
    status: RequestStatus
    outcome: SyncOutcome | None = None
    error: SyncError | None = None

    @property
    def executed(self) -> bool:
        return self.status is RequestStatus.EXECUTED


class SyncRequestCoordinator:
    """Debounces, throttles and prioritizes sync triggers."""

    def __init__(
        self,
        engine: SyncEngine,
        debounce: float = DEFAULT_DEBOUNCE,
        throttle: float = DEFAULT_THROTTLE,
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the request coordinator.

        Args:
            engine: Sync coordinator to drive.
            debounce: Window (seconds) collapsing requests from one source.
            throttle: Minimum interval (seconds) between TIMER syncs.
            cooldown: Quiet period (seconds) after a sync for automatic triggers.
            clock: Monotonic clock in seconds.
        """
        self._engine = engine
        self._debounce = debounce
        self._throttle = throttle
        self._cooldown = cooldown
        self._clock = clock

        self._running = False
        self._last_request: dict[TriggerSource, float] = {}
        self._last_executed: float | None = None
        self._last_timer_executed: float | None = None

    @property
    def is_running(self) -> bool:
        return self._running or self._engine.is_syncing

    def _check(self, source: TriggerSource, priority: TriggerPriority, now: float) -> RequestStatus:
        if self.is_running:
            return RequestStatus.BUSY

        last = self._last_request.get(source)
        self._last_request[source] = now
        if last is not None and now - last < self._debounce:
            return RequestStatus.DEBOUNCED

        if priority >= TriggerPriority.HIGH:
            return RequestStatus.EXECUTED
        if (
            source is TriggerSource.TIMER
            and self._last_timer_executed is not None
            and now - self._last_timer_executed < self._throttle
        ):
            return RequestStatus.THROTTLED
        if self._last_executed is not None and now - self._last_executed < self._cooldown:
            return RequestStatus.COOLDOWN
        return RequestStatus.EXECUTED

    async def request(
        self,
        source: TriggerSource,
        priority: TriggerPriority | None = None,
    ) -> SyncRequestResult:
        """Request a sync.

        Args:
            source: Trigger that requests the sync.
            priority: Overrides the default priority of the source.

        Returns:
            SyncRequestResult. Call-scoped sync errors are captured in it.
        """
        if priority is None:
            priority = DEFAULT_PRIORITIES[source]

        status = self._check(source, priority, self._clock())
        if status is not RequestStatus.EXECUTED:
            logger.debug("Sync request from %s dropped: %s", source.name, status.value)
            return SyncRequestResult(source=source, status=status)

        logger.debug("Sync requested by %s (priority %s)", source.name, priority.name)
        result = SyncRequestResult(source=source, status=RequestStatus.EXECUTED)
        self._running = True
        try:
            result.outcome = await self._engine.sync(silent=priority < TriggerPriority.HIGH)
        except SyncError as e:
            logger.warning("Sync requested by %s failed: %s", source.name, e)
            result.error = e
        finally:
            self._running = False
            finished = self._clock()
            self._last_executed = finished
            if source is TriggerSource.TIMER:
                self._last_timer_executed = finished
        return result
