"""Day and week rollover of the current record.

When the system date moves past the stored day, the current record
advances. When it moves into a new week, the ending week is archived
from its own day entries before the new week is adopted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mindsync.client.sync.domain.archive_record import archive_from_period
from mindsync.client.sync.domain.records import (
    ArchiveRecord,
    TrackingRecord,
    restrict_to_period,
)
from mindsync.core.dates import week_start_date
from mindsync.core.types import ResetType


@dataclass
class RolloverResult:
    """Outcome of a date check.

    Attributes:
        record: Current record after the check (a copy).
        reset_type: Kind of rollover performed, or None.
        archive: Archive record of the ended week (weekly rollover only).
    """

    record: TrackingRecord
    reset_type: ResetType | None = None
    archive: ArchiveRecord | None = None

    @property
    def changed(self) -> bool:
        return self.reset_type is not None


def check_date_and_reset(
    record: TrackingRecord,
    today: str,
    now: int,
    targets: dict[str, Any] | None = None,
    week_start_day: str | None = None,
) -> RolloverResult:
    """Roll the current record forward to today.

    Only forward moves are applied; a system date earlier than the stored
    day leaves the record untouched.

    Args:
        record: Current record (not modified).
        today: ISO date of the system's current day.
        now: Rollover time (epoch ms).
        targets: Targets snapshot stored in a new archive record.
        week_start_day: Overrides the record's week start day.

    Returns:
        RolloverResult.
    """
    if today <= record.current_day_date:
        return RolloverResult(record=record.copy())

    start_day = week_start_day or record.metadata.week_start_day
    new_anchor = week_start_date(today, start_day)
    updated = record.copy()
    meta = updated.metadata

    if new_anchor > record.anchor_date:
        archive = archive_from_period(
            anchor_date=record.anchor_date,
            day_counts=record.day_counts,
            targets=targets or {},
            device_id=meta.device_id,
            now=now,
        )
        # Entries already recorded for the new week are carried over.
        updated.day_counts = restrict_to_period(record.day_counts, new_anchor)
        updated.anchor_date = new_anchor
        updated.current_day_date = today
        updated.recompute_totals()

        meta.previous_week_start_date = record.anchor_date
        meta.date_reset_performed = True
        meta.date_reset_type = ResetType.WEEKLY
        meta.date_reset_timestamp = now
        meta.weekly_reset_timestamp = now
        meta.daily_reset_timestamp = now
        meta.history_dirty = True
        meta.mark_current_dirty(now)
        updated.last_modified = now
        return RolloverResult(record=updated, reset_type=ResetType.WEEKLY, archive=archive)

    updated.current_day_date = today
    updated.recompute_totals()
    meta.date_reset_performed = True
    meta.date_reset_type = ResetType.DAILY
    meta.date_reset_timestamp = now
    meta.daily_reset_timestamp = now
    meta.daily_totals_dirty = True
    meta.current_week_dirty = True
    meta.daily_totals_updated_at = now
    updated.last_modified = now
    return RolloverResult(record=updated, reset_type=ResetType.DAILY)
