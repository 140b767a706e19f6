"""Change detection for sync decisions.

Pure decision logic, no I/O: local dirty flags and remote revision checks
go in, per-unit intent comes out. Content is never inspected here except
for the "does the remote already hold data" input of should_upload().
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mindsync.client.sync.types import LocalFlags, RemoteChange, SyncNeeds, UploadDecision
from mindsync.core.types import ResetType

if TYPE_CHECKING:
    from mindsync.client.sync.domain.records import SyncMetadata

logger = logging.getLogger(__name__)


class ChangeDetectionService:
    """Decides which units need syncing and whether to upload them."""

    def analyze_dirty_flags(self, metadata: SyncMetadata | None) -> LocalFlags:
        """Extract dirty flags, folding the specific flags into the legacy one."""
        if metadata is None:
            return LocalFlags()
        return LocalFlags(
            daily_totals_dirty=metadata.daily_totals_dirty,
            weekly_totals_dirty=metadata.weekly_totals_dirty,
            current_week_dirty=metadata.has_current_changes,
            history_dirty=metadata.history_dirty,
            date_reset_performed=metadata.date_reset_performed,
            date_reset_type=metadata.date_reset_type.value if metadata.date_reset_type else None,
        )

    def should_sync_current(self, flags: LocalFlags, always_check: bool = True) -> bool:
        """Current period syncs when dirty, after any reset, or when checking remote."""
        return flags.current_week_dirty or flags.date_reset_performed or always_check

    def should_sync_history(self, flags: LocalFlags, always_check: bool = True) -> bool:
        """Archive syncs when dirty, after a weekly reset, or when checking remote."""
        weekly_reset = (
            flags.date_reset_performed and flags.date_reset_type == ResetType.WEEKLY.value
        )
        return flags.history_dirty or weekly_reset or always_check

    def determine_sync_needs(
        self,
        flags: LocalFlags,
        remote_change: RemoteChange | None = None,
        unit_exists_remotely: bool = True,
        *,
        always_check: bool = True,
    ) -> SyncNeeds:
        """Combine local flags and the remote check into per-unit intent.

        Args:
            flags: Local dirty flag analysis.
            remote_change: Result of the remote revision check, if performed.
            unit_exists_remotely: False when the remote file is missing, which
                always requires a sync to create it.
            always_check: Check the remote even without local changes (the
                normal periodic/triggered case).

        Returns:
            SyncNeeds with reasons for logging.
        """
        check = always_check or not unit_exists_remotely
        needs = SyncNeeds(
            sync_current=self.should_sync_current(flags, check),
            sync_history=self.should_sync_history(flags, check),
            has_local_changes=flags.has_local_changes,
            has_remote_changes=bool(remote_change and remote_change.has_changed),
            reasons={
                "local": self.build_change_reason(flags),
                "remote": remote_change.reason if remote_change else "not checked",
            },
        )
        logger.debug(
            "Sync needs: current=%s history=%s local=%s remote=%s",
            needs.sync_current,
            needs.sync_history,
            needs.reasons["local"],
            needs.reasons["remote"],
        )
        return needs

    def build_change_reason(self, flags: LocalFlags) -> str:
        """Human-readable summary of local changes."""
        reasons = []
        if flags.daily_totals_dirty:
            reasons.append("daily totals changed")
        if flags.weekly_totals_dirty:
            reasons.append("weekly totals changed")
        if flags.current_week_dirty:
            reasons.append("current week data changed")
        if flags.history_dirty:
            reasons.append("history data changed")
        if flags.date_reset_performed:
            kind = (flags.date_reset_type or "date").lower()
            reasons.append(f"{kind} reset performed")
        return ", ".join(reasons) if reasons else "no local changes"

    def should_upload(
        self,
        has_local_changes: bool,
        is_fresh_install: bool,
        cloud_has_content: bool,
        merge_changed: bool = False,
        is_new_unit: bool = False,
    ) -> UploadDecision:
        """Decide whether a unit must be uploaded.

        A fresh install never uploads over a remote file that already has
        content, even with dirty flags set: a blank new device must not
        clobber existing cloud data.

        Args:
            has_local_changes: Local dirty flags are set.
            is_fresh_install: This device has never synced.
            cloud_has_content: The downloaded remote payload holds data.
            merge_changed: The merged result differs from the remote copy.
            is_new_unit: The remote file did not exist before this sync.
        """
        if is_fresh_install and cloud_has_content:
            return UploadDecision(False, "fresh install with existing cloud data")
        if is_new_unit:
            return UploadDecision(True, "no cloud file exists")
        if has_local_changes:
            return UploadDecision(True, "local changes detected")
        if merge_changed:
            return UploadDecision(True, "merge changed remote content")
        return UploadDecision(False, "no upload needed")
