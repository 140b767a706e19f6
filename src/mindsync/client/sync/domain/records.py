"""Tracking and archive records exchanged with the cloud.

This module provides:
- SyncMetadata: Dirty flags, timestamps and reset bookkeeping
- TrackingRecord: The current-period aggregate (day -> food -> count)
- ArchiveMetadata, ArchiveRecord: One completed period
- ArchiveIndex: Lightweight (anchor date, updatedAt) projection of the archive

Payloads use the camelCase keys of the synced JSON files. Counts are
non-negative integers and timestamps are epoch milliseconds.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any

from mindsync.core.dates import in_week, week_end_date, week_start_date
from mindsync.core.types import ResetType

SCHEMA_VERSION = 1

DayCounts = dict[str, dict[str, int]]


def generate_device_id() -> str:
    """Generate a random device identifier."""
    return f"device-{uuid.uuid4().hex[:12]}"


def copy_day_counts(day_counts: DayCounts) -> DayCounts:
    """Deep copy a day -> food -> count map."""
    return {day: dict(counts) for day, counts in day_counts.items()}


def sum_period(day_counts: DayCounts, anchor_date: str) -> dict[str, int]:
    """Sum per-food counts over the days of the week starting at anchor_date.

    Days outside the period are ignored.
    """
    totals: dict[str, int] = {}
    for day, counts in day_counts.items():
        if not in_week(day, anchor_date):
            continue
        for food_id, count in counts.items():
            totals[food_id] = totals.get(food_id, 0) + count
    return totals


def restrict_to_period(day_counts: DayCounts, anchor_date: str) -> DayCounts:
    """Keep only the days that belong to the week starting at anchor_date."""
    return {
        day: dict(counts)
        for day, counts in day_counts.items()
        if in_week(day, anchor_date)
    }


def has_counts(day_counts: DayCounts) -> bool:
    """Check whether any day holds a non-zero count."""
    return any(count > 0 for counts in day_counts.values() for count in counts.values())


@dataclass
class SyncMetadata:
    """Sync bookkeeping carried inside the current record.

    The legacy current_week_dirty flag is kept in step with the
    daily/weekly flags by mark_current_dirty() and clear_current_dirty().
    """

    device_id: str = ""
    current_week_dirty: bool = False
    daily_totals_dirty: bool = False
    weekly_totals_dirty: bool = False
    history_dirty: bool = False
    daily_totals_updated_at: int = 0
    weekly_totals_updated_at: int = 0
    is_fresh_install: bool = False
    date_reset_performed: bool = False
    date_reset_type: ResetType | None = None
    date_reset_timestamp: int = 0
    daily_reset_timestamp: int = 0
    weekly_reset_timestamp: int = 0
    previous_week_start_date: str | None = None
    week_start_day: str = "Sunday"
    schema_version: int = SCHEMA_VERSION

    @property
    def has_current_changes(self) -> bool:
        """Whether the current period has unsynced mutations."""
        return self.current_week_dirty or self.daily_totals_dirty or self.weekly_totals_dirty

    def mark_current_dirty(self, now: int) -> None:
        """Flag the current period as mutated at time now."""
        self.daily_totals_dirty = True
        self.weekly_totals_dirty = True
        self.current_week_dirty = True
        self.daily_totals_updated_at = now
        self.weekly_totals_updated_at = now

    def clear_current_dirty(self) -> None:
        """Clear current-period flags after a confirmed upload."""
        self.daily_totals_dirty = False
        self.weekly_totals_dirty = False
        self.current_week_dirty = False
        self.is_fresh_install = False
        self.date_reset_performed = False
        self.date_reset_type = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the synced JSON shape."""
        return {
            "deviceId": self.device_id,
            "currentWeekDirty": self.current_week_dirty,
            "dailyTotalsDirty": self.daily_totals_dirty,
            "weeklyTotalsDirty": self.weekly_totals_dirty,
            "historyDirty": self.history_dirty,
            "dailyTotalsUpdatedAt": self.daily_totals_updated_at,
            "weeklyTotalsUpdatedAt": self.weekly_totals_updated_at,
            "isFreshInstall": self.is_fresh_install,
            "dateResetPerformed": self.date_reset_performed,
            "dateResetType": self.date_reset_type.value if self.date_reset_type else None,
            "dateResetTimestamp": self.date_reset_timestamp,
            "dailyResetTimestamp": self.daily_reset_timestamp,
            "weeklyResetTimestamp": self.weekly_reset_timestamp,
            "previousWeekStartDate": self.previous_week_start_date,
            "weekStartDay": self.week_start_day,
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncMetadata:
        """Create from the synced JSON shape. Missing keys take defaults."""
        reset_type = data.get("dateResetType")
        return cls(
            device_id=data.get("deviceId") or "",
            current_week_dirty=bool(data.get("currentWeekDirty", False)),
            daily_totals_dirty=bool(data.get("dailyTotalsDirty", False)),
            weekly_totals_dirty=bool(data.get("weeklyTotalsDirty", False)),
            history_dirty=bool(data.get("historyDirty", False)),
            daily_totals_updated_at=int(data.get("dailyTotalsUpdatedAt") or 0),
            weekly_totals_updated_at=int(data.get("weeklyTotalsUpdatedAt") or 0),
            is_fresh_install=bool(data.get("isFreshInstall", False)),
            date_reset_performed=bool(data.get("dateResetPerformed", False)),
            date_reset_type=ResetType(reset_type) if reset_type else None,
            date_reset_timestamp=int(data.get("dateResetTimestamp") or 0),
            daily_reset_timestamp=int(data.get("dailyResetTimestamp") or 0),
            weekly_reset_timestamp=int(data.get("weeklyResetTimestamp") or 0),
            previous_week_start_date=data.get("previousWeekStartDate"),
            week_start_day=data.get("weekStartDay") or "Sunday",
            schema_version=int(data.get("schemaVersion") or SCHEMA_VERSION),
        )


@dataclass
class TrackingRecord:
    """The current-period tracking record.

    Attributes:
        current_day_date: ISO date of the current day.
        anchor_date: ISO date of the first day of the current week.
        day_counts: Day -> food id -> servings.
        period_totals: Food id -> servings over the week (derived).
        metadata: Sync bookkeeping.
        last_modified: Last mutation time (epoch ms).
    """

    current_day_date: str
    anchor_date: str
    day_counts: DayCounts = field(default_factory=dict)
    period_totals: dict[str, int] = field(default_factory=dict)
    metadata: SyncMetadata = field(default_factory=SyncMetadata)
    last_modified: int = 0

    @classmethod
    def new(
        cls,
        today: str,
        week_start_day: str = "Sunday",
        device_id: str | None = None,
    ) -> TrackingRecord:
        """Create an empty record for a device that has never synced."""
        metadata = SyncMetadata(
            device_id=device_id or generate_device_id(),
            is_fresh_install=True,
            week_start_day=week_start_day,
        )
        return cls(
            current_day_date=today,
            anchor_date=week_start_date(today, week_start_day),
            metadata=metadata,
        )

    def recompute_totals(self) -> None:
        """Re-derive period totals from the day map."""
        self.period_totals = sum_period(self.day_counts, self.anchor_date)

    @property
    def has_content(self) -> bool:
        """Whether any serving has been recorded."""
        return has_counts(self.day_counts)

    def copy(self) -> TrackingRecord:
        """Return a deep copy."""
        return copy.deepcopy(self)

    def to_payload(self) -> dict[str, Any]:
        """Convert to the current-period JSON payload."""
        return {
            "currentDayDate": self.current_day_date,
            "currentWeekStartDate": self.anchor_date,
            "dailyCounts": copy_day_counts(self.day_counts),
            "weeklyCounts": dict(self.period_totals),
            "lastModified": self.last_modified,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TrackingRecord:
        """Create from a current-period JSON payload.

        Period totals are always re-derived from dailyCounts; the
        transmitted weeklyCounts are not trusted.
        """
        record = cls(
            current_day_date=data["currentDayDate"],
            anchor_date=data["currentWeekStartDate"],
            day_counts=copy_day_counts(data.get("dailyCounts") or {}),
            metadata=SyncMetadata.from_dict(data.get("metadata") or {}),
            last_modified=int(data.get("lastModified") or 0),
        )
        record.recompute_totals()
        return record


def record_serving(
    record: TrackingRecord,
    food_id: str,
    delta: int,
    day: str,
    now: int,
) -> TrackingRecord:
    """Apply a serving change to a copy of the record.

    Counts never go below zero. Totals are re-derived and the
    current-period dirty flags are set in the same update.

    Args:
        record: Current record (not modified).
        food_id: Food group identifier.
        delta: Servings to add (negative to remove).
        day: ISO date of the serving; must belong to the current week.
        now: Mutation time (epoch ms).

    Returns:
        Updated copy of the record.

    Raises:
        ValueError: If day is outside the current week.
    """
    if not in_week(day, record.anchor_date):
        raise ValueError(f"{day} is outside the current week starting {record.anchor_date}")

    updated = record.copy()
    counts = updated.day_counts.setdefault(day, {})
    counts[food_id] = max(0, counts.get(food_id, 0) + delta)
    updated.recompute_totals()
    updated.metadata.mark_current_dirty(now)
    updated.last_modified = now
    return updated


@dataclass
class ArchiveMetadata:
    """Metadata of an archived period."""

    created_at: int = 0
    updated_at: int = 0
    schema_version: int = SCHEMA_VERSION
    device_id: str = ""
    sync_status: str = "local"  # "local" or "synced"
    merged_after_reset: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to the synced JSON shape."""
        return {
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "schemaVersion": self.schema_version,
            "deviceId": self.device_id,
            "syncStatus": self.sync_status,
            "mergedAfterReset": self.merged_after_reset,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchiveMetadata:
        """Create from the synced JSON shape."""
        return cls(
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
            schema_version=int(data.get("schemaVersion") or SCHEMA_VERSION),
            device_id=data.get("deviceId") or "",
            sync_status=data.get("syncStatus") or "local",
            merged_after_reset=bool(data.get("mergedAfterReset", False)),
        )


@dataclass
class ArchiveRecord:
    """One completed week.

    The targets snapshot keeps historical evaluation independent of
    later target changes.
    """

    anchor_date: str
    daily_breakdown: DayCounts = field(default_factory=dict)
    totals: dict[str, int] = field(default_factory=dict)
    targets: dict[str, Any] = field(default_factory=dict)
    metadata: ArchiveMetadata = field(default_factory=ArchiveMetadata)

    @property
    def end_date(self) -> str:
        """Last day of the archived week."""
        return week_end_date(self.anchor_date)

    @property
    def updated_at(self) -> int:
        return self.metadata.updated_at

    def copy(self) -> ArchiveRecord:
        """Return a deep copy."""
        return copy.deepcopy(self)

    def content_equals(self, other: ArchiveRecord) -> bool:
        """Compare counts and totals, ignoring metadata."""
        return (
            self.anchor_date == other.anchor_date
            and self.daily_breakdown == other.daily_breakdown
            and self.totals == other.totals
        )

    def to_payload(self) -> dict[str, Any]:
        """Convert to the archived-week JSON payload."""
        return {
            "id": self.anchor_date,
            "weekStartDate": self.anchor_date,
            "weekEndDate": self.end_date,
            "dailyBreakdown": copy_day_counts(self.daily_breakdown),
            "totals": dict(self.totals),
            "targets": copy.deepcopy(self.targets),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ArchiveRecord:
        """Create from an archived-week JSON payload."""
        return cls(
            anchor_date=data["weekStartDate"],
            daily_breakdown=copy_day_counts(data.get("dailyBreakdown") or {}),
            totals=dict(data.get("totals") or {}),
            targets=copy.deepcopy(data.get("targets") or {}),
            metadata=ArchiveMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass
class ArchiveIndex:
    """Anchor date -> last update time of every archived week."""

    entries: dict[str, int] = field(default_factory=dict)
    last_updated: int = 0

    @classmethod
    def from_records(cls, records: list[ArchiveRecord]) -> ArchiveIndex:
        """Build the index describing a set of local archive records."""
        entries = {r.anchor_date: r.updated_at for r in records}
        return cls(entries=entries, last_updated=max(entries.values(), default=0))

    def __len__(self) -> int:
        return len(self.entries)

    def to_payload(self) -> dict[str, Any]:
        """Convert to the index JSON payload, newest week first."""
        return {
            "lastUpdated": self.last_updated,
            "weeks": [
                {"weekStartDate": anchor, "updatedAt": self.entries[anchor]}
                for anchor in sorted(self.entries, reverse=True)
            ],
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ArchiveIndex:
        """Create from the index JSON payload."""
        entries: dict[str, int] = {}
        for week in data.get("weeks") or []:
            anchor = week.get("weekStartDate") or week.get("anchorDate")
            if anchor:
                entries[anchor] = max(entries.get(anchor, 0), int(week.get("updatedAt") or 0))
        return cls(entries=entries, last_updated=int(data.get("lastUpdated") or 0))
