"""Tests for ChangeDetectionService."""

import pytest

from mindsync.client.sync import ChangeDetectionService, LocalFlags, RemoteChange
from mindsync.client.sync.domain import SyncMetadata
from mindsync.core.types import ResetType


@pytest.fixture
def detector() -> ChangeDetectionService:
    return ChangeDetectionService()


class TestDirtyFlags:
    """Tests for analyze_dirty_flags."""

    def test_no_metadata(self, detector: ChangeDetectionService) -> None:
        flags = detector.analyze_dirty_flags(None)

        assert not flags.has_local_changes

    def test_specific_flags_fold_into_current_week(
        self, detector: ChangeDetectionService
    ) -> None:
        """A daily or weekly flag alone should count as a current week change."""
        flags = detector.analyze_dirty_flags(SyncMetadata(daily_totals_dirty=True))

        assert flags.current_week_dirty
        assert flags.has_local_changes

    def test_reset_type_is_reported(self, detector: ChangeDetectionService) -> None:
        metadata = SyncMetadata(date_reset_performed=True, date_reset_type=ResetType.WEEKLY)

        flags = detector.analyze_dirty_flags(metadata)

        assert flags.date_reset_type == "WEEKLY"
        assert "weekly reset performed" in detector.build_change_reason(flags)


class TestSyncNeeds:
    """Tests for determine_sync_needs."""

    def test_clean_without_remote_check(self, detector: ChangeDetectionService) -> None:
        """Without local changes and without checking remote, nothing syncs."""
        needs = detector.determine_sync_needs(LocalFlags(), always_check=False)

        assert not needs.sync_current
        assert not needs.sync_history
        assert needs.reasons["local"] == "no local changes"
        assert needs.reasons["remote"] == "not checked"

    def test_missing_remote_unit_always_syncs(self, detector: ChangeDetectionService) -> None:
        needs = detector.determine_sync_needs(
            LocalFlags(), unit_exists_remotely=False, always_check=False
        )

        assert needs.sync_current
        assert needs.sync_history

    def test_weekly_reset_syncs_history(self, detector: ChangeDetectionService) -> None:
        flags = LocalFlags(date_reset_performed=True, date_reset_type="WEEKLY")

        needs = detector.determine_sync_needs(flags, always_check=False)

        assert needs.sync_current
        assert needs.sync_history

    def test_daily_reset_does_not_sync_history(self, detector: ChangeDetectionService) -> None:
        flags = LocalFlags(date_reset_performed=True, date_reset_type="DAILY")

        needs = detector.determine_sync_needs(flags, always_check=False)

        assert needs.sync_current
        assert not needs.sync_history

    def test_remote_change_is_reported(self, detector: ChangeDetectionService) -> None:
        needs = detector.determine_sync_needs(
            LocalFlags(), RemoteChange(True, "rev changed (1 -> 2)")
        )

        assert needs.has_remote_changes
        assert not needs.has_local_changes
        assert needs.reasons["remote"] == "rev changed (1 -> 2)"


class TestShouldUpload:
    """Tests for should_upload."""

    def test_fresh_install_never_overwrites_cloud_content(
        self, detector: ChangeDetectionService
    ) -> None:
        """A fresh install must not upload over existing cloud data, even when dirty."""
        decision = detector.should_upload(
            has_local_changes=True,
            is_fresh_install=True,
            cloud_has_content=True,
            merge_changed=True,
        )

        assert not decision
        assert "fresh install" in decision.reason

    def test_fresh_install_with_empty_cloud_uploads(
        self, detector: ChangeDetectionService
    ) -> None:
        decision = detector.should_upload(
            has_local_changes=True, is_fresh_install=True, cloud_has_content=False
        )

        assert decision.should_upload

    def test_new_unit_uploads(self, detector: ChangeDetectionService) -> None:
        decision = detector.should_upload(
            has_local_changes=False,
            is_fresh_install=False,
            cloud_has_content=False,
            is_new_unit=True,
        )

        assert decision.should_upload
        assert decision.reason == "no cloud file exists"

    def test_merge_change_uploads(self, detector: ChangeDetectionService) -> None:
        decision = detector.should_upload(
            has_local_changes=False,
            is_fresh_install=False,
            cloud_has_content=True,
            merge_changed=True,
        )

        assert decision.should_upload

    def test_nothing_to_upload(self, detector: ChangeDetectionService) -> None:
        decision = detector.should_upload(
            has_local_changes=False, is_fresh_install=False, cloud_has_content=True
        )

        assert not decision
        assert decision.reason == "no upload needed"
