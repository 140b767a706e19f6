"""Merge strategy for the archive index and archive transfer planning.

The index is a union of weeks keyed by anchor date; for a week present
on both sides the larger updatedAt wins. The merged index then tells
which individual archive records must travel in which direction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from mindsync.client.sync.domain.records import ArchiveIndex


class TransferDirection(Enum):
    """Direction of an archive record transfer."""

    DOWNLOAD = auto()
    UPLOAD = auto()


@dataclass(frozen=True)
class ArchiveTransfer:
    """One archive record to move between local store and cloud."""

    anchor_date: str
    direction: TransferDirection
    local_updated_at: int | None
    remote_updated_at: int | None


@dataclass
class IndexMergeResult:
    """Result of merging two archive indexes.

    The inputs are kept alongside the merged index so transfers can be
    planned against the side each week came from.
    """

    index: ArchiveIndex
    remote_changed: bool
    local: ArchiveIndex = field(default_factory=ArchiveIndex)
    remote: ArchiveIndex = field(default_factory=ArchiveIndex)


def merge_archive_index(local: ArchiveIndex, remote: ArchiveIndex) -> IndexMergeResult:
    """Union two indexes, keeping the larger updatedAt per week.

    Args:
        local: Index built from local archive records.
        remote: Index downloaded from the cloud.

    Returns:
        IndexMergeResult; remote_changed is True when the merged index
        has entries the remote does not.
    """
    entries = dict(remote.entries)
    for anchor, updated_at in local.entries.items():
        entries[anchor] = max(entries.get(anchor, 0), updated_at)

    merged = ArchiveIndex(
        entries=entries,
        last_updated=max(local.last_updated, remote.last_updated, *entries.values(), 0),
    )
    return IndexMergeResult(
        index=merged,
        remote_changed=entries != remote.entries,
        local=local,
        remote=remote,
    )


def plan_archive_transfers(merge: IndexMergeResult) -> list[ArchiveTransfer]:
    """Decide which archive records need to move, oldest week first.

    Every week of the merged index must end up on both sides at its
    merged updatedAt. A side that lacks the week or holds an older copy
    receives it from the side that holds the merged version.
    """
    transfers: list[ArchiveTransfer] = []
    for anchor, target in sorted(merge.index.entries.items()):
        local_at = merge.local.entries.get(anchor)
        remote_at = merge.remote.entries.get(anchor)
        if local_at == target and remote_at == target:
            continue

        if remote_at == target:
            direction = TransferDirection.DOWNLOAD
        else:
            direction = TransferDirection.UPLOAD

        transfers.append(
            ArchiveTransfer(
                anchor_date=anchor,
                direction=direction,
                local_updated_at=local_at,
                remote_updated_at=remote_at,
            )
        )
    return transfers
