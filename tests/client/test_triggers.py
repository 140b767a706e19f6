"""Tests for SyncRequestCoordinator - debounce, throttle, cooldown and priority."""

import pytest

from mindsync.client.sync import (
    NetworkConstraintError,
    RequestStatus,
    SyncOutcome,
    SyncRequestCoordinator,
    TriggerPriority,
    TriggerSource,
)


class ManualClock:
    """Monotonic clock moved by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class StubEngine:
    """Sync engine recording its calls."""

    def __init__(self) -> None:
        self.is_syncing = False
        self.calls: list[bool] = []
        self.error: Exception | None = None

    async def sync(self, silent: bool = False) -> SyncOutcome:
        self.calls.append(silent)
        if self.error is not None:
            raise self.error
        return SyncOutcome(timestamp=1)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def engine() -> StubEngine:
    return StubEngine()


@pytest.fixture
def requests(engine: StubEngine, clock: ManualClock) -> SyncRequestCoordinator:
    return SyncRequestCoordinator(engine, debounce=2.0, throttle=60.0, cooldown=30.0, clock=clock)


class TestSyncRequestCoordinator:
    """Tests for request arbitration."""

    @pytest.mark.asyncio
    async def test_first_request_executes(
        self, requests: SyncRequestCoordinator, engine: StubEngine
    ) -> None:
        result = await requests.request(TriggerSource.STARTUP)

        assert result.executed
        assert result.outcome.timestamp == 1
        assert engine.calls == [True]

    @pytest.mark.asyncio
    async def test_busy_engine_drops_request(
        self, requests: SyncRequestCoordinator, engine: StubEngine
    ) -> None:
        """Requests while a sync runs are dropped, never queued."""
        engine.is_syncing = True

        result = await requests.request(TriggerSource.MANUAL)

        assert result.status is RequestStatus.BUSY
        assert engine.calls == []

    @pytest.mark.asyncio
    async def test_burst_is_debounced(
        self, requests: SyncRequestCoordinator, clock: ManualClock, engine: StubEngine
    ) -> None:
        """A burst from one source collapses into its first request."""
        await requests.request(TriggerSource.MANUAL)
        clock.now += 1.0

        result = await requests.request(TriggerSource.MANUAL)

        assert result.status is RequestStatus.DEBOUNCED
        assert len(engine.calls) == 1

    @pytest.mark.asyncio
    async def test_cooldown_blocks_automatic_triggers(
        self, requests: SyncRequestCoordinator, clock: ManualClock
    ) -> None:
        await requests.request(TriggerSource.STARTUP)
        clock.now += 10.0

        result = await requests.request(TriggerSource.VISIBILITY)
        assert result.status is RequestStatus.COOLDOWN

        clock.now += 30.0
        result = await requests.request(TriggerSource.NETWORK_RESTORED)
        assert result.executed

    @pytest.mark.asyncio
    async def test_manual_bypasses_cooldown(
        self, requests: SyncRequestCoordinator, clock: ManualClock, engine: StubEngine
    ) -> None:
        """High priority requests skip cooldown and run loudly."""
        await requests.request(TriggerSource.STARTUP)
        clock.now += 5.0

        result = await requests.request(TriggerSource.MANUAL)

        assert result.executed
        assert engine.calls == [True, False]

    @pytest.mark.asyncio
    async def test_timer_is_throttled(
        self, requests: SyncRequestCoordinator, clock: ManualClock
    ) -> None:
        """TIMER syncs run at most once per throttle interval."""
        assert (await requests.request(TriggerSource.TIMER)).executed
        clock.now += 45.0

        result = await requests.request(TriggerSource.TIMER)
        assert result.status is RequestStatus.THROTTLED

        clock.now += 20.0
        assert (await requests.request(TriggerSource.TIMER)).executed

    @pytest.mark.asyncio
    async def test_priority_override(
        self, requests: SyncRequestCoordinator, clock: ManualClock
    ) -> None:
        await requests.request(TriggerSource.STARTUP)
        clock.now += 5.0

        result = await requests.request(TriggerSource.VISIBILITY, TriggerPriority.HIGH)

        assert result.executed

    @pytest.mark.asyncio
    async def test_sync_error_is_captured(
        self, requests: SyncRequestCoordinator, engine: StubEngine, clock: ManualClock
    ) -> None:
        """Call-scoped errors are returned, and still start the cooldown."""
        engine.error = NetworkConstraintError("offline")

        result = await requests.request(TriggerSource.STARTUP)

        assert result.executed
        assert isinstance(result.error, NetworkConstraintError)
        assert result.outcome is None
        assert not requests.is_running

        clock.now += 5.0
        engine.error = None
        result = await requests.request(TriggerSource.VISIBILITY)
        assert result.status is RequestStatus.COOLDOWN
