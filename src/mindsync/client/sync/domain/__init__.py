"""Domain logic for sync: records, merge strategies and rollover.

Everything in this package is pure: no I/O and no clock reads beyond
the timestamps passed in by the caller.
"""

from mindsync.client.sync.domain.archive_index import (
    ArchiveTransfer,
    IndexMergeResult,
    TransferDirection,
    merge_archive_index,
    plan_archive_transfers,
)
from mindsync.client.sync.domain.archive_record import (
    ArchiveMergeResult,
    archive_from_period,
    merge_archive_records,
    merge_remote_totals,
)
from mindsync.client.sync.domain.current_period import (
    CurrentMergeResult,
    MergeStrategy,
    PendingArchiveMerge,
    merge_current_period,
    merge_day_counts,
)
from mindsync.client.sync.domain.records import (
    SCHEMA_VERSION,
    ArchiveIndex,
    ArchiveMetadata,
    ArchiveRecord,
    DayCounts,
    SyncMetadata,
    TrackingRecord,
    record_serving,
    sum_period,
)
from mindsync.client.sync.domain.rollover import RolloverResult, check_date_and_reset

__all__ = [
    # Records
    "SCHEMA_VERSION",
    "ArchiveIndex",
    "ArchiveMetadata",
    "ArchiveRecord",
    "DayCounts",
    "SyncMetadata",
    "TrackingRecord",
    "record_serving",
    "sum_period",
    # Current period
    "CurrentMergeResult",
    "MergeStrategy",
    "PendingArchiveMerge",
    "merge_current_period",
    "merge_day_counts",
    # Archive
    "ArchiveMergeResult",
    "ArchiveTransfer",
    "IndexMergeResult",
    "TransferDirection",
    "archive_from_period",
    "merge_archive_index",
    "merge_archive_records",
    "merge_remote_totals",
    "plan_archive_transfers",
    # Rollover
    "RolloverResult",
    "check_date_and_reset",
]
