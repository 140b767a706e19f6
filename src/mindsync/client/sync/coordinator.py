"""Sync coordinator for reconciling local tracking data with the cloud.

This module provides:
- SyncCoordinator: Top-level orchestrator owning the single-flight guard

A sync call runs these steps in order:
1. Single-flight guard: a concurrent call returns SyncOutcome(skipped=True)
2. Network gate: wifi_only and a metered (or no) connection abort the call
3. Authentication: refresh or interactive authorization, or abort
4. Date rollover: archive an ended week before adopting the new one
5. Current period unit: locate, check revision, download, merge, upload
6. Archive unit: index merge, then individual week transfers

Steps 2 and 3 raise (call-scoped failures). Failures inside a unit are
captured in that unit's outcome and do not stop the next unit.

Dirty flags and cached revision handles are written only after the
network operation they describe has succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from mindsync.client.network import StaticNetworkMonitor
from mindsync.client.sync.change_detection import ChangeDetectionService
from mindsync.client.sync.domain import (
    ArchiveIndex,
    ArchiveRecord,
    PendingArchiveMerge,
    RolloverResult,
    TrackingRecord,
    check_date_and_reset,
    plan_archive_transfers,
)
from mindsync.client.sync.domain.records import has_counts
from mindsync.client.sync.merge import MergeCoordinator
from mindsync.client.sync.metadata import FileMetadataManager
from mindsync.client.sync.retry import linear_backoff, retry_with_backoff
from mindsync.client.sync.types import (
    AuthenticationRequiredError,
    NetworkConstraintError,
    ProviderTransientError,
    SyncError,
    SyncOutcome,
    SyncStatus,
    SyncUnit,
    UnitOutcome,
    UnitStatus,
)
from mindsync.core.config import TARGETS_PREFERENCE, SyncSettings
from mindsync.core.dates import now_ms, today_str
from mindsync.core.types import SyncPhase

if TYPE_CHECKING:
    from mindsync.client.network import NetworkMonitor
    from mindsync.client.providers.base import CloudStorageProvider
    from mindsync.client.providers.types import FileHandle
    from mindsync.client.state import LocalDataStore

logger = logging.getLogger(__name__)

CURRENT_FILE_NAME = "mind-diet-current-week.json"
INDEX_FILE_NAME = "mind-diet-history-index.json"

# Proactive refresh on startup
STARTUP_REFRESH_ATTEMPTS = 3
STARTUP_REFRESH_BASE_DELAY = 1.0  # seconds


def archive_file_name(anchor_date: str) -> str:
    """Remote file name of the archived week starting at anchor_date."""
    return f"mind-diet-week-{anchor_date}.json"


class SyncCoordinator:
    """Central orchestrator for sync operations.

    All collaborators are passed in; nothing is looked up globally.

    Usage:
        coordinator = SyncCoordinator(provider, store, settings)
        await coordinator.initialize()
        outcome = await coordinator.sync()
    """

    def __init__(
        self,
        provider: CloudStorageProvider,
        store: LocalDataStore,
        settings: SyncSettings | None = None,
        *,
        network: NetworkMonitor | None = None,
        change_detection: ChangeDetectionService | None = None,
        merger: MergeCoordinator | None = None,
        file_metadata: FileMetadataManager | None = None,
        clock: Callable[[], int] = now_ms,
        today: Callable[[], str] = today_str,
    ) -> None:
        """Initialize the coordinator.

        Args:
            provider: Cloud storage provider.
            store: Local data store.
            settings: Sync settings (defaults if None).
            network: Network monitor used by the wifi_only gate.
            change_detection: Decision service (created if None).
            merger: Merge coordinator (created if None).
            file_metadata: Revision handle cache (created on store if None).
            clock: Returns the current time in epoch ms.
            today: Returns today's ISO date.
        """
        self._provider = provider
        self._store = store
        self._settings = settings or SyncSettings()
        self._network = network or StaticNetworkMonitor()
        self._detector = change_detection or ChangeDetectionService()
        self._merger = merger or MergeCoordinator()
        self._file_metadata = file_metadata or FileMetadataManager(store)
        self._clock = clock
        self._today = today

        # Single-flight guard
        self._syncing = False

        # Status
        self._phase = SyncPhase.IDLE
        self._last_sync_timestamp: int | None = None
        self._last_error: str | None = None

    @property
    def provider(self) -> CloudStorageProvider:
        return self._provider

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def last_sync_timestamp(self) -> int | None:
        return self._last_sync_timestamp

    # === Lifecycle ===

    async def initialize(self) -> bool:
        """Load credentials and refresh them proactively if needed.

        When only a refresh credential is usable, the refresh is attempted
        up to three times with linear backoff before giving up.

        Returns:
            True if the provider is authenticated.
        """
        await self._provider.initialize()
        if not self._provider.is_authenticated and self._provider.needs_refresh:
            try:
                await retry_with_backoff(
                    self._provider.refresh_token,
                    max_attempts=STARTUP_REFRESH_ATTEMPTS,
                    base_delay=STARTUP_REFRESH_BASE_DELAY,
                    is_retryable=lambda e: isinstance(e, ProviderTransientError),
                    backoff=linear_backoff,
                )
            except ProviderTransientError as e:
                logger.warning("Proactive token refresh failed: %s", e)
        logger.info(
            "Sync initialized (%s, authenticated=%s)",
            self._provider.kind.value,
            self._provider.is_authenticated,
        )
        return self._provider.is_authenticated

    def status(self) -> SyncStatus:
        """Current sync status for display."""
        return SyncStatus(
            phase=self._phase,
            authenticated=self._provider.is_authenticated,
            provider=self._provider.kind.value,
            last_sync_timestamp=self._last_sync_timestamp,
            last_error=self._last_error,
        )

    async def resume_pending_authorization(self, callback: str) -> SyncOutcome:
        """Complete a pending authorization and run a sync.

        Raises:
            AuthenticationRequiredError: If the authorization cannot be completed.
        """
        if not await self._provider.complete_authorization(callback):
            raise AuthenticationRequiredError("Authorization could not be completed")
        return await self.sync()

    async def disconnect(self) -> None:
        """Forget stored credentials."""
        await self._provider.clear_stored_auth()
        logger.info("Disconnected from %s", self._provider.kind.value)

    async def clear_cloud_data(self) -> int:
        """Delete every app file from the cloud and forget cached handles.

        Returns:
            Number of deleted files.
        """
        count = await self._provider.clear_all_app_files()
        records = await self._store.get_all_archive_records()
        names = [CURRENT_FILE_NAME, INDEX_FILE_NAME]
        names.extend(archive_file_name(r.anchor_date) for r in records)
        for name in names:
            await self._file_metadata.forget(name)
        logger.info("Cleared cloud data (%d files)", count)
        return count

    # === Rollover ===

    async def check_date_and_reset(self) -> RolloverResult:
        """Roll the current record forward to today, archiving an ended week.

        The archive record is saved before the new current record, so a
        failed archive write leaves the old week in place.
        """
        record = await self._store.load_current_record()
        targets = await self._store.get_preference(TARGETS_PREFERENCE, {})
        result = check_date_and_reset(
            record,
            self._today(),
            self._clock(),
            targets=targets,
            week_start_day=self._settings.week_start_day,
        )
        if not result.changed:
            return result

        if result.archive is not None:
            archive = result.archive
            existing = await self._store.get_archive_record(archive.anchor_date)
            if existing is not None:
                archive = self._merger.merge_archive(existing, archive, self._clock()).record
            await self._store.save_archive_record(archive)
            logger.info("Archived week %s", archive.anchor_date)

        await self._store.save_current_record(result.record)
        logger.info(
            "%s rollover to %s", result.reset_type.value.capitalize(), result.record.current_day_date
        )
        return result

    # === Sync ===

    async def sync(self, silent: bool = False) -> SyncOutcome:
        """Run one sync.

        Args:
            silent: Log progress at DEBUG instead of INFO.

        Returns:
            SyncOutcome; skipped=True if another sync is running.

        Raises:
            NetworkConstraintError: The network policy forbids syncing.
            AuthenticationRequiredError: No usable authorization.
            ProviderTransientError: Token refresh failed transiently.
        """
        if self._syncing:
            logger.debug("Sync already in progress, skipping")
            return SyncOutcome(skipped=True)

        self._syncing = True
        level = logging.DEBUG if silent else logging.INFO
        try:
            self._phase = SyncPhase.SYNCING
            self._check_network()
            await self._ensure_authenticated()

            logger.log(level, "Sync started (%s)", self._provider.kind.value)
            outcome = SyncOutcome()
            rollover = await self.check_date_and_reset()
            if rollover.reset_type is not None:
                outcome.reset_performed = rollover.reset_type.value

            outcome.units[SyncUnit.CURRENT] = await self._run_unit(
                SyncUnit.CURRENT, self._sync_current
            )
            outcome.units[SyncUnit.ARCHIVE] = await self._run_unit(
                SyncUnit.ARCHIVE, self._sync_archive
            )

            outcome.timestamp = self._clock()
            self._last_sync_timestamp = outcome.timestamp
            if outcome.success:
                self._phase = SyncPhase.IDLE
                self._last_error = None
            else:
                self._phase = SyncPhase.ERROR
                self._last_error = "; ".join(str(e) for e in outcome.errors)
            logger.log(
                level,
                "Sync finished: current=%s archive=%s",
                outcome.current.status.name.lower(),
                outcome.archive.status.name.lower(),
            )
            return outcome
        except NetworkConstraintError as e:
            self._phase = SyncPhase.OFFLINE
            self._last_error = str(e)
            raise
        except SyncError as e:
            self._phase = SyncPhase.ERROR
            self._last_error = str(e)
            raise
        finally:
            if self._phase is SyncPhase.SYNCING:
                self._phase = SyncPhase.ERROR
            self._syncing = False

    def _check_network(self) -> None:
        if not self._network.is_online():
            raise NetworkConstraintError("No network connection")
        if self._settings.wifi_only and not self._network.is_unmetered():
            raise NetworkConstraintError("Sync restricted to unmetered networks")

    async def _ensure_authenticated(self) -> None:
        if self._provider.is_authenticated:
            return
        if self._provider.needs_refresh and await self._provider.refresh_token():
            return
        if not await self._provider.authenticate():
            raise AuthenticationRequiredError(
                f"Authorization with {self._provider.kind.value} required"
            )

    async def _run_unit(self, unit: SyncUnit, func: Callable[[UnitOutcome], Any]) -> UnitOutcome:
        """Run one unit, capturing unit-scoped failures in its outcome."""
        outcome = UnitOutcome(unit=unit)
        try:
            await func(outcome)
        except AuthenticationRequiredError:
            raise
        except SyncError as e:
            logger.error("Sync of %s failed: %s", unit.value, e)
            outcome.status = UnitStatus.FAILED
            outcome.error = e
        return outcome

    # === Current period ===

    async def _sync_current(self, outcome: UnitOutcome) -> None:
        local = await self._store.load_current_record()
        flags = self._detector.analyze_dirty_flags(local.metadata)

        handle = await self._provider.search_file(CURRENT_FILE_NAME)
        is_new = handle is None
        if handle is None:
            handle = await self._provider.find_or_create_file(CURRENT_FILE_NAME)
            remote_change = None
        else:
            remote_change = await self._file_metadata.check_remote(
                CURRENT_FILE_NAME, handle.id, self._provider
            )

        needs = self._detector.determine_sync_needs(
            flags,
            remote_change,
            unit_exists_remotely=not is_new,
            always_check=self._settings.always_check_remote,
        )
        outcome.reasons.extend(needs.reasons.values())
        if not needs.sync_current or (
            not is_new and not needs.has_remote_changes and not flags.current_week_dirty
        ):
            logger.debug("Current period unchanged, skipping")
            return

        merged = local
        remote: TrackingRecord | None = None
        pending = None
        merge_changed = False
        if needs.has_remote_changes:
            payload = await self._provider.download_file(handle.id)
            outcome.downloaded = True
            remote = self._merger.parse_current(payload)
            if remote is not None:
                result = self._merger.merge_current(local, remote)
                merged = result.record
                pending = result.pending_archive
                merge_changed = result.remote_changed
                outcome.merged = True

        decision = self._detector.should_upload(
            has_local_changes=flags.current_week_dirty,
            is_fresh_install=local.metadata.is_fresh_install,
            cloud_has_content=remote is not None and has_counts(remote.day_counts),
            merge_changed=merge_changed,
            is_new_unit=is_new or (outcome.downloaded and remote is None),
        )
        outcome.reasons.append(decision.reason)

        if remote is not None:
            # Local now holds everything the remote has. When the merge added
            # nothing and no upload follows, both sides agree.
            if not merge_changed and not decision.should_upload:
                merged.metadata.clear_current_dirty()
            await self._store.save_current_record(merged)
            await self._file_metadata.store_file_metadata(
                CURRENT_FILE_NAME, (remote_change.handle if remote_change else None) or handle
            )

        if pending is not None:
            await self._apply_pending_archive(pending, merged)

        if decision.should_upload:
            uploaded = await self._provider.upload_file(handle.id, merged.to_payload())
            outcome.uploaded = True
            await self._file_metadata.store_file_metadata(CURRENT_FILE_NAME, uploaded)
            await self._clear_current_dirty(merged)
        else:
            logger.debug("Current period not uploaded: %s", decision.reason)

        outcome.status = UnitStatus.SYNCED

    async def _clear_current_dirty(self, uploaded: TrackingRecord) -> None:
        """Clear current-period flags unless the record changed during upload."""
        latest = await self._store.load_current_record()
        if (
            latest.anchor_date != uploaded.anchor_date
            or latest.day_counts != uploaded.day_counts
        ):
            logger.debug("Current record changed during upload, keeping dirty flags")
            return
        latest.metadata.clear_current_dirty()
        await self._store.save_current_record(latest)

    async def _apply_pending_archive(
        self, pending: PendingArchiveMerge, record: TrackingRecord
    ) -> None:
        existing = await self._store.get_archive_record(pending.anchor_date)
        targets = await self._store.get_preference(TARGETS_PREFERENCE, {})
        archive, changed = self._merger.apply_pending_archive(
            pending, existing, targets, record.metadata.device_id, self._clock()
        )
        if not changed:
            return
        await self._store.save_archive_record(archive)

        latest = await self._store.load_current_record()
        latest.metadata.history_dirty = True
        await self._store.save_current_record(latest)

    # === Archive ===

    async def _sync_archive(self, outcome: UnitOutcome) -> None:
        current = await self._store.load_current_record()
        flags = self._detector.analyze_dirty_flags(current.metadata)
        local_records = {r.anchor_date: r for r in await self._store.get_all_archive_records()}
        local_index = ArchiveIndex.from_records(list(local_records.values()))

        handle = await self._provider.search_file(INDEX_FILE_NAME)
        is_new = handle is None
        if handle is None:
            if not local_records:
                logger.debug("No archive locally or remotely, skipping")
                return
            handle = await self._provider.find_or_create_file(INDEX_FILE_NAME)
            remote_change = None
        else:
            remote_change = await self._file_metadata.check_remote(
                INDEX_FILE_NAME, handle.id, self._provider
            )

        needs = self._detector.determine_sync_needs(
            flags,
            remote_change,
            unit_exists_remotely=not is_new,
            always_check=self._settings.always_check_remote,
        )
        outcome.reasons.extend(needs.reasons.values())
        if not needs.sync_history or (
            not is_new and not needs.has_remote_changes and not flags.history_dirty
        ):
            logger.debug("Archive unchanged, skipping")
            return

        remote_index = ArchiveIndex()
        if not is_new:
            remote_index = self._merger.parse_index(await self._provider.download_file(handle.id))
            outcome.downloaded = True
            await self._file_metadata.store_file_metadata(
                INDEX_FILE_NAME, (remote_change.handle if remote_change else None) or handle
            )
        merge = self._merger.merge_index(local_index, remote_index)
        outcome.merged = True

        # Weeks whose transfer fails keep their remote entry
        published = dict(merge.index.entries)
        for transfer in plan_archive_transfers(merge):
            anchor = transfer.anchor_date
            try:
                updated_at = await self._transfer_archive(
                    anchor, local_records.get(anchor), outcome
                )
            except AuthenticationRequiredError:
                raise
            except SyncError as e:
                logger.error(
                    "%s of week %s failed: %s", transfer.direction.name.capitalize(), anchor, e
                )
                outcome.record_errors[anchor] = str(e)
                if transfer.remote_updated_at is None:
                    published.pop(anchor, None)
                else:
                    published[anchor] = transfer.remote_updated_at
                continue
            if updated_at is None:
                published.pop(anchor, None)
            else:
                published[anchor] = updated_at

        logger.debug(
            "Archive index: %d weeks after merge, remote_changed=%s",
            len(published),
            merge.remote_changed,
        )
        if is_new or published != remote_index.entries:
            index = ArchiveIndex(entries=published, last_updated=self._clock())
            uploaded = await self._provider.upload_file(handle.id, index.to_payload())
            outcome.uploaded = True
            await self._file_metadata.store_file_metadata(INDEX_FILE_NAME, uploaded)

        if outcome.record_errors:
            outcome.status = UnitStatus.FAILED
            outcome.error = SyncError(
                f"{len(outcome.record_errors)} archive transfer(s) failed"
            )
            return

        if flags.history_dirty:
            latest = await self._store.load_current_record()
            latest.metadata.history_dirty = False
            await self._store.save_current_record(latest)
        outcome.status = UnitStatus.SYNCED

    async def _transfer_archive(
        self, anchor: str, local: ArchiveRecord | None, outcome: UnitOutcome
    ) -> int | None:
        """Reconcile one week with its remote file.

        The remote copy, when there is one, is always merged in before
        anything is uploaded, so an upload never drops another device's
        counts.

        Returns:
            updatedAt of the week as now stored remotely, or None if the
            week exists on neither side.
        """
        name = archive_file_name(anchor)
        handle = await self._provider.search_file(name)
        remote = None
        if handle is not None:
            remote = self._merger.parse_archive(await self._provider.download_file(handle.id))
            await self._file_metadata.store_file_metadata(name, handle)

        if remote is None:
            if local is None:
                logger.warning("Archive index lists week %s but its file is missing", anchor)
                return None
            updated_at = await self._upload_archive(local, handle)
            outcome.records_uploaded += 1
            return updated_at

        outcome.records_downloaded += 1
        result = self._merger.merge_archive(local, remote, self._clock())
        record = result.record
        if result.remote_changed:
            # Other devices must see a newer updatedAt to fetch the merged week
            record.metadata.updated_at = max(self._clock(), record.updated_at)
            updated_at = await self._upload_archive(record, handle)
            outcome.records_uploaded += 1
            return updated_at

        record.metadata.sync_status = "synced"
        await self._store.save_archive_record(record)
        logger.debug("Downloaded week %s", anchor)
        return record.updated_at

    async def _upload_archive(self, record: ArchiveRecord, handle: FileHandle | None = None) -> int:
        """Upload a week and mark it synced locally.

        Returns:
            updatedAt of the uploaded week.
        """
        name = archive_file_name(record.anchor_date)
        if handle is None:
            handle = await self._provider.find_or_create_file(name)

        record = record.copy()
        record.metadata.sync_status = "synced"
        uploaded = await self._provider.upload_file(handle.id, record.to_payload())
        await self._file_metadata.store_file_metadata(name, uploaded)
        await self._store.save_archive_record(record)
        logger.debug("Uploaded week %s", record.anchor_date)
        return record.updated_at
