"""Merge strategies for individual archive records.

Archived weeks are only ever revised upward: a merge may raise a count
or a total, never lower or drop one.
"""

from __future__ import annotations

from dataclasses import dataclass

from mindsync.client.sync.domain.current_period import merge_day_counts
from mindsync.client.sync.domain.records import (
    ArchiveMetadata,
    ArchiveRecord,
    DayCounts,
    restrict_to_period,
    sum_period,
)


@dataclass
class ArchiveMergeResult:
    """Result of an archive record merge."""

    record: ArchiveRecord
    local_changed: bool
    remote_changed: bool


def merge_remote_totals(
    record: ArchiveRecord,
    remote_totals: dict[str, int],
    now: int,
) -> tuple[ArchiveRecord, bool]:
    """Fold totals that arrived after this week was archived locally.

    A total is replaced only when the remote value is strictly larger.

    Args:
        record: Local archive record (not modified).
        remote_totals: Food id -> total reported by the remote.
        now: Merge time (epoch ms), used as the new updatedAt.

    Returns:
        Tuple of (merged copy, changed).
    """
    merged = record.copy()
    changed = False
    for food_id, total in remote_totals.items():
        if total > merged.totals.get(food_id, 0):
            merged.totals[food_id] = total
            changed = True

    if changed:
        merged.metadata.merged_after_reset = True
        merged.metadata.updated_at = max(now, merged.metadata.updated_at)
        merged.metadata.sync_status = "local"
    return merged, changed


def _merge_totals(*sources: dict[str, int]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for source in sources:
        for food_id, total in source.items():
            totals[food_id] = max(totals.get(food_id, 0), total)
    return totals


def merge_archive_records(
    local: ArchiveRecord,
    remote: ArchiveRecord,
    now: int,
) -> ArchiveMergeResult:
    """Merge two copies of the same archived week.

    Day breakdowns are merged with the per (day, food) maximum. Each total
    is the largest of both stored totals and the merged day sum, so totals
    raised by a post-reset merge survive. The local targets snapshot is
    kept unless it is empty.

    Args:
        local: Local copy.
        remote: Downloaded copy.
        now: Merge time (epoch ms), used when the result differs from both.

    Returns:
        ArchiveMergeResult.
    """
    if local.anchor_date != remote.anchor_date:
        raise ValueError(
            f"Cannot merge archive {remote.anchor_date} into {local.anchor_date}"
        )

    days = restrict_to_period(
        merge_day_counts(local.daily_breakdown, remote.daily_breakdown),
        local.anchor_date,
    )
    totals = _merge_totals(local.totals, remote.totals, sum_period(days, local.anchor_date))

    created = [t for t in (local.metadata.created_at, remote.metadata.created_at) if t]
    merged = ArchiveRecord(
        anchor_date=local.anchor_date,
        daily_breakdown=days,
        totals=totals,
        targets=dict(local.targets or remote.targets),
        metadata=ArchiveMetadata(
            created_at=min(created, default=0),
            updated_at=max(local.metadata.updated_at, remote.metadata.updated_at),
            schema_version=max(local.metadata.schema_version, remote.metadata.schema_version),
            device_id=local.metadata.device_id or remote.metadata.device_id,
            sync_status=local.metadata.sync_status,
            merged_after_reset=(
                local.metadata.merged_after_reset or remote.metadata.merged_after_reset
            ),
        ),
    )

    local_changed = not merged.content_equals(local)
    remote_changed = not merged.content_equals(remote)
    if local_changed and remote_changed:
        merged.metadata.updated_at = max(now, merged.metadata.updated_at)

    return ArchiveMergeResult(
        record=merged,
        local_changed=local_changed,
        remote_changed=remote_changed,
    )


def archive_from_period(
    anchor_date: str,
    day_counts: DayCounts,
    targets: dict,
    device_id: str,
    now: int,
    merged_after_reset: bool = False,
) -> ArchiveRecord:
    """Build a new archive record from a week's day counts.

    Totals are exactly the sums of the week's day entries.
    """
    days = restrict_to_period(day_counts, anchor_date)
    return ArchiveRecord(
        anchor_date=anchor_date,
        daily_breakdown=days,
        totals=sum_period(days, anchor_date),
        targets=dict(targets),
        metadata=ArchiveMetadata(
            created_at=now,
            updated_at=now,
            device_id=device_id,
            sync_status="local",
            merged_after_reset=merged_after_reset,
        ),
    )
