"""Merge coordinator.

This module provides:
- MergeCoordinator: Parses downloaded payloads and applies the per-unit
  merge strategies of the domain package

Parsing goes through the pydantic schemas first, so a malformed remote
payload raises MergeFailureError before any local state is touched.
An empty payload means "no remote copy yet" and parses to None.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from mindsync.client.sync.domain import (
    ArchiveIndex,
    ArchiveMergeResult,
    ArchiveRecord,
    CurrentMergeResult,
    IndexMergeResult,
    PendingArchiveMerge,
    TrackingRecord,
    archive_from_period,
    merge_archive_index,
    merge_archive_records,
    merge_current_period,
    merge_day_counts,
    merge_remote_totals,
    sum_period,
)
from mindsync.client.sync.domain.records import restrict_to_period
from mindsync.client.sync.schemas import (
    validate_archive_payload,
    validate_current_payload,
    validate_index_payload,
)
from mindsync.client.sync.types import MergeFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _build(factory: Callable[[dict[str, Any]], T], data: dict[str, Any]) -> T:
    """Build a record from a validated payload, reporting bad values as merge failures."""
    try:
        return factory(data)
    except (KeyError, ValueError) as e:
        raise MergeFailureError(f"Cannot read remote payload: {e}") from e


class MergeCoordinator:
    """Reconciles local and remote snapshots of each sync unit."""

    # === Parsing ===

    def parse_current(self, payload: dict[str, Any]) -> TrackingRecord | None:
        """Build a tracking record from a downloaded payload.

        Returns:
            The remote record, or None if the remote file is empty.

        Raises:
            MergeFailureError: If the payload is malformed.
        """
        if not payload:
            return None
        return _build(TrackingRecord.from_payload, validate_current_payload(payload))

    def parse_archive(self, payload: dict[str, Any]) -> ArchiveRecord | None:
        """Build an archive record from a downloaded payload."""
        if not payload:
            return None
        return _build(ArchiveRecord.from_payload, validate_archive_payload(payload))

    def parse_index(self, payload: dict[str, Any]) -> ArchiveIndex:
        """Build the archive index from a downloaded payload (empty if absent)."""
        if not payload:
            return ArchiveIndex()
        return _build(ArchiveIndex.from_payload, validate_index_payload(payload))

    # === Current period ===

    def merge_current(self, local: TrackingRecord, remote: TrackingRecord) -> CurrentMergeResult:
        """Merge the current-period records."""
        result = merge_current_period(local, remote)
        logger.debug(
            "Current period merged (%s): local_changed=%s remote_changed=%s",
            result.strategy.value,
            result.local_changed,
            result.remote_changed,
        )
        return result

    def apply_pending_archive(
        self,
        pending: PendingArchiveMerge,
        existing: ArchiveRecord | None,
        targets: dict[str, Any],
        device_id: str,
        now: int,
    ) -> tuple[ArchiveRecord, bool]:
        """Fold an ended week seen during the current-period merge into the archive.

        A missing archive is created from the pending counts. An existing
        one gains the larger day counts, and its totals are replaced only
        where the incoming total is strictly larger.

        Returns:
            Tuple of (archive record, changed).
        """
        if existing is None:
            record = archive_from_period(
                pending.anchor_date,
                pending.day_counts,
                targets,
                device_id,
                now,
                merged_after_reset=True,
            )
            logger.info("Archived week %s from the remote current period", pending.anchor_date)
            return record, True

        if existing.anchor_date != pending.anchor_date:
            raise MergeFailureError(
                f"Cannot merge week {pending.anchor_date} into archive {existing.anchor_date}"
            )

        days = restrict_to_period(
            merge_day_counts(existing.daily_breakdown, pending.day_counts), pending.anchor_date
        )
        days_changed = days != existing.daily_breakdown

        incoming = dict(pending.totals)
        for food_id, total in sum_period(days, pending.anchor_date).items():
            incoming[food_id] = max(incoming.get(food_id, 0), total)

        base = existing.copy()
        base.daily_breakdown = days
        record, totals_changed = merge_remote_totals(base, incoming, now)
        if days_changed and not totals_changed:
            record.metadata.merged_after_reset = True
            record.metadata.updated_at = max(now, record.metadata.updated_at)
            record.metadata.sync_status = "local"

        changed = days_changed or totals_changed
        if changed:
            logger.info("Merged late counts into archived week %s", pending.anchor_date)
        return record, changed

    # === Archive ===

    def merge_index(self, local: ArchiveIndex, remote: ArchiveIndex) -> IndexMergeResult:
        """Union the archive indexes."""
        result = merge_archive_index(local, remote)
        logger.debug(
            "Archive index merged: %d local, %d remote, %d total",
            len(local),
            len(remote),
            len(result.index),
        )
        return result

    def merge_archive(
        self,
        local: ArchiveRecord | None,
        remote: ArchiveRecord,
        now: int,
    ) -> ArchiveMergeResult:
        """Merge a downloaded archive record with the local copy, if any."""
        if local is None:
            return ArchiveMergeResult(record=remote.copy(), local_changed=True, remote_changed=False)
        try:
            return merge_archive_records(local, remote, now)
        except ValueError as e:
            raise MergeFailureError(str(e)) from e
