"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError and its subclasses: the sync error taxonomy
- SyncUnit, UnitStatus, UnitOutcome, SyncOutcome: Structured sync results
- LocalFlags, RemoteChange, SyncNeeds, UploadDecision: Change detection types
- TriggerSource, TriggerPriority: Sync request types
- SyncStatus: Snapshot of the engine state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto

from mindsync.core.types import SyncPhase


class SyncError(Exception):
    """Base exception for sync errors."""


class NetworkConstraintError(SyncError):
    """The network policy gate blocked the sync (not retried automatically)."""


class AuthenticationRequiredError(SyncError):
    """Credentials are invalid or expired and could not be refreshed."""


class ProviderError(SyncError):
    """A provider request failed.

    Attributes:
        status_code: HTTP status code, if the failure came from a response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderTransientError(ProviderError):
    """Rate limit or transient network failure; retry on the next trigger."""


class MergeFailureError(SyncError):
    """A remote payload was malformed and could not be merged."""


class NotFoundError(SyncError):
    """A remote file does not exist.

    Providers raise this internally only; at the capability boundary it
    becomes None or an empty payload.
    """


class SyncUnit(str, Enum):
    """Top-level syncable aggregates, in processing order."""

    CURRENT = "current"
    ARCHIVE = "archive"


class UnitStatus(Enum):
    """Result of processing one unit."""

    SKIPPED = auto()  # Nothing to do
    SYNCED = auto()  # Downloaded and/or uploaded
    FAILED = auto()  # Unit-scoped failure, see error


@dataclass
class UnitOutcome:
    """Outcome of one unit within a sync call."""

    unit: SyncUnit
    status: UnitStatus = UnitStatus.SKIPPED
    downloaded: bool = False
    uploaded: bool = False
    merged: bool = False
    reasons: list[str] = field(default_factory=list)
    error: SyncError | None = None
    records_downloaded: int = 0
    records_uploaded: int = 0
    record_errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is not UnitStatus.FAILED and not self.record_errors


@dataclass
class SyncOutcome:
    """Structured result of a sync call.

    Attributes:
        skipped: True when another sync was already running.
        units: Outcome per processed unit.
        timestamp: Completion time (epoch ms), 0 when skipped.
        reset_performed: Kind of date rollover applied before syncing.
    """

    skipped: bool = False
    units: dict[SyncUnit, UnitOutcome] = field(default_factory=dict)
    timestamp: int = 0
    reset_performed: str | None = None

    @property
    def success(self) -> bool:
        """True when not skipped and every unit succeeded."""
        return not self.skipped and all(u.ok for u in self.units.values())

    @property
    def errors(self) -> list[SyncError]:
        return [u.error for u in self.units.values() if u.error is not None]

    @property
    def current(self) -> UnitOutcome | None:
        return self.units.get(SyncUnit.CURRENT)

    @property
    def archive(self) -> UnitOutcome | None:
        return self.units.get(SyncUnit.ARCHIVE)


@dataclass(frozen=True)
class LocalFlags:
    """Dirty flag analysis of the local metadata."""

    daily_totals_dirty: bool = False
    weekly_totals_dirty: bool = False
    current_week_dirty: bool = False
    history_dirty: bool = False
    date_reset_performed: bool = False
    date_reset_type: str | None = None

    @property
    def has_local_changes(self) -> bool:
        return (
            self.current_week_dirty
            or self.history_dirty
            or self.daily_totals_dirty
            or self.weekly_totals_dirty
        )


@dataclass(frozen=True)
class RemoteChange:
    """Whether a remote file changed since it was last observed.

    Attributes:
        has_changed: True when the revision differs or cannot be compared.
        reason: Human-readable explanation.
        handle: Freshly fetched file handle, when available.
    """

    has_changed: bool
    reason: str
    handle: object | None = None


@dataclass
class SyncNeeds:
    """Per-unit sync intent derived from local flags and remote changes."""

    sync_current: bool
    sync_history: bool
    has_local_changes: bool
    has_remote_changes: bool
    reasons: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UploadDecision:
    """Whether a unit should be uploaded, and why."""

    should_upload: bool
    reason: str

    def __bool__(self) -> bool:
        return self.should_upload


class TriggerSource(Enum):
    """Event that requested a sync."""

    TIMER = auto()
    VISIBILITY = auto()
    MANUAL = auto()
    NETWORK_RESTORED = auto()
    STARTUP = auto()


class TriggerPriority(IntEnum):
    """Priority of a sync request (higher value = more urgent)."""

    LOW = 0
    NORMAL = 1
    HIGH = 2


DEFAULT_PRIORITIES: dict[TriggerSource, TriggerPriority] = {
    TriggerSource.TIMER: TriggerPriority.LOW,
    TriggerSource.VISIBILITY: TriggerPriority.NORMAL,
    TriggerSource.NETWORK_RESTORED: TriggerPriority.NORMAL,
    TriggerSource.STARTUP: TriggerPriority.NORMAL,
    TriggerSource.MANUAL: TriggerPriority.HIGH,
}


@dataclass
class SyncStatus:
    """Snapshot of the sync engine state."""

    phase: SyncPhase = SyncPhase.IDLE
    authenticated: bool = False
    provider: str | None = None
    last_sync_timestamp: int | None = None
    last_error: str | None = None
