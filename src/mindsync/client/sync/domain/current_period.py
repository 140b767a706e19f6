"""Merge strategy for the current-period record.

Rules:
| Local vs remote anchor | Counts                        | Other period          |
|------------------------|-------------------------------|-----------------------|
| same week              | per (day, food) maximum       | -                     |
| remote is older        | local (remote week ended)     | remote -> archive     |
| remote is newer        | remote (local week ended)     | local -> archive      |

Counts are user-entered observations, so the maximum is the only rule
that never discards one. Wall-clock timestamps are never used to pick
a winner for counts, which keeps the merge commutative and idempotent.
Period totals are always re-derived from the merged day map.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from mindsync.client.sync.domain.records import (
    DayCounts,
    TrackingRecord,
    copy_day_counts,
    restrict_to_period,
    sum_period,
)

logger = logging.getLogger(__name__)


class MergeStrategy(Enum):
    """Which rule produced a current-period merge."""

    MAX = "max"
    LOCAL_AFTER_RESET = "local_after_reset"
    REMOTE_NEWER_PERIOD = "remote_newer_period"


@dataclass(frozen=True)
class PendingArchiveMerge:
    """Counts of an ended week observed during a current-period merge.

    They must be folded into the local archive record for anchor_date.
    """

    anchor_date: str
    day_counts: DayCounts
    totals: dict[str, int]


@dataclass
class CurrentMergeResult:
    """Result of merging two current-period records.

    Attributes:
        record: The reconciled record.
        local_changed: Counts or week differ from the local input.
        remote_changed: Counts or week differ from the remote input.
        strategy: Rule that was applied.
        pending_archive: Ended-week counts to merge into the archive.
    """

    record: TrackingRecord
    local_changed: bool
    remote_changed: bool
    strategy: MergeStrategy
    pending_archive: PendingArchiveMerge | None = None


def merge_day_counts(a: DayCounts, b: DayCounts) -> DayCounts:
    """Union of two day maps taking the maximum per (day, food)."""
    merged = copy_day_counts(a)
    for day, counts in b.items():
        target = merged.setdefault(day, {})
        for food_id, count in counts.items():
            target[food_id] = max(target.get(food_id, 0), count)
    return merged


def _pending_from(record: TrackingRecord) -> PendingArchiveMerge:
    days = restrict_to_period(record.day_counts, record.anchor_date)
    return PendingArchiveMerge(
        anchor_date=record.anchor_date,
        day_counts=days,
        totals=sum_period(days, record.anchor_date),
    )


def _same_content(a: TrackingRecord, b: TrackingRecord) -> bool:
    return a.anchor_date == b.anchor_date and a.day_counts == b.day_counts


def merge_current_period(local: TrackingRecord, remote: TrackingRecord) -> CurrentMergeResult:
    """Merge local and remote current-period records.

    Pure function of its inputs: no clock is read. The merged record keeps
    the local device's metadata (dirty flags, reset bookkeeping) with
    update timestamps advanced to the newer side, and is never flagged as
    a fresh install.

    Args:
        local: Record held on this device.
        remote: Record downloaded from the cloud.

    Returns:
        CurrentMergeResult describing the reconciled record.
    """
    merged = local.copy()
    pending: PendingArchiveMerge | None = None

    if remote.anchor_date == local.anchor_date:
        strategy = MergeStrategy.MAX
        merged.day_counts = merge_day_counts(local.day_counts, remote.day_counts)
    elif remote.anchor_date < local.anchor_date:
        # Local rolled over after the remote was last written: the remote
        # describes a week that has already ended on this device.
        strategy = MergeStrategy.LOCAL_AFTER_RESET
        pending = _pending_from(remote)
        logger.info(
            "Remote record is from week %s, local is on %s: keeping local, "
            "scheduling archive merge",
            remote.anchor_date,
            local.anchor_date,
        )
    else:
        strategy = MergeStrategy.REMOTE_NEWER_PERIOD
        merged.anchor_date = remote.anchor_date
        merged.current_day_date = max(local.current_day_date, remote.current_day_date)
        merged.day_counts = copy_day_counts(remote.day_counts)
        pending = _pending_from(local)
        logger.info(
            "Remote record is from newer week %s (local %s): adopting remote, "
            "scheduling archive of local week",
            remote.anchor_date,
            local.anchor_date,
        )

    merged.recompute_totals()
    meta = merged.metadata
    meta.daily_totals_updated_at = max(
        local.metadata.daily_totals_updated_at, remote.metadata.daily_totals_updated_at
    )
    meta.weekly_totals_updated_at = max(
        local.metadata.weekly_totals_updated_at, remote.metadata.weekly_totals_updated_at
    )
    meta.is_fresh_install = False
    merged.last_modified = max(local.last_modified, remote.last_modified)

    return CurrentMergeResult(
        record=merged,
        local_changed=not _same_content(merged, local),
        remote_changed=not _same_content(merged, remote),
        strategy=strategy,
        pending_archive=pending,
    )
