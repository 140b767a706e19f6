"""Tests for MergeCoordinator and payload validation."""

import pytest

from mindsync.client.sync import MergeCoordinator, MergeFailureError
from mindsync.client.sync.domain import (
    PendingArchiveMerge,
    TrackingRecord,
    archive_from_period,
)
from mindsync.client.sync.schemas import (
    validate_archive_payload,
    validate_current_payload,
    validate_index_payload,
)

WEEK_1 = "2026-10-11"
NOW = 1_760_000_000_000


@pytest.fixture
def merger() -> MergeCoordinator:
    return MergeCoordinator()


def current_payload(**overrides: object) -> dict:
    record = TrackingRecord.new("2026-10-12", device_id="device-remote")
    record.day_counts = {"2026-10-12": {"fish": 1}}
    record.recompute_totals()
    payload = record.to_payload()
    payload.update(overrides)
    return payload


class TestSchemas:
    """Tests for payload validation."""

    def test_valid_current_payload(self) -> None:
        data = validate_current_payload(current_payload())

        assert data["currentWeekStartDate"] == WEEK_1
        assert data["dailyCounts"] == {"2026-10-12": {"fish": 1}}
        assert data["metadata"]["deviceId"] == "device-remote"

    def test_missing_metadata_takes_defaults(self) -> None:
        """Payloads from older writers may omit the metadata block."""
        payload = current_payload()
        del payload["metadata"]

        data = validate_current_payload(payload)

        assert data["metadata"]["historyDirty"] is False

    def test_unknown_keys_are_ignored(self) -> None:
        data = validate_current_payload(current_payload(extraField=1))

        assert "extraField" not in data

    def test_negative_count_is_rejected(self) -> None:
        with pytest.raises(MergeFailureError, match="Malformed current period"):
            validate_current_payload(current_payload(dailyCounts={"2026-10-12": {"fish": -1}}))

    def test_invalid_day_key_is_rejected(self) -> None:
        with pytest.raises(MergeFailureError):
            validate_current_payload(current_payload(dailyCounts={"monday": {"fish": 1}}))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"currentDayDate": "2026-02-30"},
            {"currentWeekStartDate": "2026-13-01"},
            {"dailyCounts": {"2026-02-29": {"fish": 1}}},
        ],
    )
    def test_impossible_dates_are_rejected(self, overrides: dict) -> None:
        """Dates with the right layout but no such day should not get through."""
        with pytest.raises(MergeFailureError):
            validate_current_payload(current_payload(**overrides))

    def test_missing_anchor_is_rejected(self) -> None:
        payload = current_payload()
        del payload["currentWeekStartDate"]

        with pytest.raises(MergeFailureError):
            validate_current_payload(payload)

    def test_non_object_payload_is_rejected(self) -> None:
        with pytest.raises(MergeFailureError, match="not a JSON object"):
            validate_current_payload(["not", "an", "object"])

    def test_archive_sync_status_is_checked(self) -> None:
        payload = archive_from_period(WEEK_1, {}, {}, "d", NOW).to_payload()
        payload["metadata"]["syncStatus"] = "uploading"

        with pytest.raises(MergeFailureError):
            validate_archive_payload(payload)

    def test_index_accepts_anchor_date(self) -> None:
        data = validate_index_payload({"weeks": [{"anchorDate": WEEK_1, "updatedAt": 4}]})

        assert data["weeks"] == [{"weekStartDate": WEEK_1, "updatedAt": 4}]
        assert data["lastUpdated"] == 0


class TestParsing:
    """Tests for MergeCoordinator parsing."""

    def test_empty_payloads(self, merger: MergeCoordinator) -> None:
        """An empty remote file means there is no remote copy yet."""
        assert merger.parse_current({}) is None
        assert merger.parse_archive({}) is None
        assert len(merger.parse_index({})) == 0

    def test_parse_current(self, merger: MergeCoordinator) -> None:
        record = merger.parse_current(current_payload(weeklyCounts={"fish": 8}))

        assert record.anchor_date == WEEK_1
        assert record.period_totals == {"fish": 1}

    def test_parse_malformed_current(self, merger: MergeCoordinator) -> None:
        with pytest.raises(MergeFailureError):
            merger.parse_current({"currentDayDate": "yesterday"})

    def test_parse_impossible_dates(self, merger: MergeCoordinator) -> None:
        with pytest.raises(MergeFailureError):
            merger.parse_current(current_payload(currentDayDate="2026-02-30"))
        with pytest.raises(MergeFailureError):
            merger.parse_archive({"weekStartDate": "2026-02-29"})
        with pytest.raises(MergeFailureError):
            merger.parse_index({"weeks": [{"weekStartDate": "2026-04-31", "updatedAt": 1}]})


class TestPendingArchive:
    """Tests for folding an ended week into the archive."""

    def test_missing_archive_is_created(self, merger: MergeCoordinator) -> None:
        pending = PendingArchiveMerge(WEEK_1, {"2026-10-12": {"fish": 2}}, {"fish": 2})

        record, changed = merger.apply_pending_archive(pending, None, {"fish": 3}, "d", NOW)

        assert changed
        assert record.totals == {"fish": 2}
        assert record.targets == {"fish": 3}
        assert record.metadata.merged_after_reset

    def test_existing_archive_gains_late_counts(self, merger: MergeCoordinator) -> None:
        existing = archive_from_period(WEEK_1, {"2026-10-12": {"fish": 1}}, {}, "d", NOW)
        pending = PendingArchiveMerge(
            WEEK_1,
            {"2026-10-12": {"fish": 1}, "2026-10-13": {"fish": 2}},
            {"fish": 3},
        )

        record, changed = merger.apply_pending_archive(pending, existing, {}, "d", NOW + 10)

        assert changed
        assert record.daily_breakdown == {"2026-10-12": {"fish": 1}, "2026-10-13": {"fish": 2}}
        assert record.totals == {"fish": 3}
        assert record.updated_at == NOW + 10
        assert record.metadata.sync_status == "local"

    def test_larger_total_is_kept(self, merger: MergeCoordinator) -> None:
        """A larger incoming total replaces the stored one even without new days."""
        existing = archive_from_period(WEEK_1, {"2026-10-12": {"fish": 1}}, {}, "d", NOW)
        pending = PendingArchiveMerge(WEEK_1, {"2026-10-12": {"fish": 1}}, {"fish": 4})

        record, changed = merger.apply_pending_archive(pending, existing, {}, "d", NOW + 10)

        assert changed
        assert record.totals == {"fish": 4}

    def test_same_counts_change_nothing(self, merger: MergeCoordinator) -> None:
        existing = archive_from_period(WEEK_1, {"2026-10-12": {"fish": 1}}, {}, "d", NOW)
        pending = PendingArchiveMerge(WEEK_1, {"2026-10-12": {"fish": 1}}, {"fish": 1})

        record, changed = merger.apply_pending_archive(pending, existing, {}, "d", NOW + 10)

        assert not changed
        assert record.updated_at == NOW

    def test_week_mismatch_fails(self, merger: MergeCoordinator) -> None:
        existing = archive_from_period("2026-10-04", {}, {}, "d", NOW)
        pending = PendingArchiveMerge(WEEK_1, {}, {})

        with pytest.raises(MergeFailureError):
            merger.apply_pending_archive(pending, existing, {}, "d", NOW)


class TestArchiveMerge:
    """Tests for MergeCoordinator.merge_archive."""

    def test_no_local_copy(self, merger: MergeCoordinator) -> None:
        remote = archive_from_period(WEEK_1, {"2026-10-12": {"fish": 1}}, {}, "d", NOW)

        result = merger.merge_archive(None, remote, NOW + 1)

        assert result.record.totals == {"fish": 1}
        assert result.local_changed
        assert not result.remote_changed

    def test_different_weeks_fail(self, merger: MergeCoordinator) -> None:
        local = archive_from_period("2026-10-04", {}, {}, "d", NOW)
        remote = archive_from_period(WEEK_1, {}, {}, "d", NOW)

        with pytest.raises(MergeFailureError):
            merger.merge_archive(local, remote, NOW)
