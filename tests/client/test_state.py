"""Tests for the SQLite local data store."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from mindsync.client.state import SQLiteDataStore
from mindsync.client.sync.domain import archive_from_period, record_serving
from mindsync.core.dates import today_str, week_start_date

NOW = 1_760_000_000_000


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SQLiteDataStore]:
    data_store = SQLiteDataStore(tmp_path / "state.db")
    yield data_store
    data_store.close()


class TestStoreCreation:
    """Tests for SQLiteDataStore initialization."""

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "state.db"
        data_store = SQLiteDataStore(db_path)

        assert db_path.exists()
        data_store.close()

    @pytest.mark.asyncio
    async def test_first_load_creates_fresh_install_record(self, store: SQLiteDataStore) -> None:
        """A device that never synced starts with an empty fresh-install record."""
        record = await store.load_current_record()

        assert record.current_day_date == today_str()
        assert record.anchor_date == week_start_date(today_str())
        assert record.metadata.is_fresh_install
        assert record.metadata.device_id
        assert not record.has_content

        again = await store.load_current_record()
        assert again.metadata.device_id == record.metadata.device_id

    @pytest.mark.asyncio
    async def test_monday_week_start(self, tmp_path: Path) -> None:
        data_store = SQLiteDataStore(tmp_path / "state.db", week_start_day="Monday")
        try:
            record = await data_store.load_current_record()
        finally:
            data_store.close()

        assert record.anchor_date == week_start_date(today_str(), "Monday")
        assert record.metadata.week_start_day == "Monday"


class TestCurrentRecord:
    """Tests for persisting the current record."""

    @pytest.mark.asyncio
    async def test_save_and_reopen(self, tmp_path: Path) -> None:
        """Saved records survive reopening the database."""
        db_path = tmp_path / "state.db"
        first = SQLiteDataStore(db_path)
        record = await first.load_current_record()
        updated = record_serving(record, "berries", 2, record.current_day_date, NOW)
        await first.save_current_record(updated)
        first.close()

        second = SQLiteDataStore(db_path)
        try:
            loaded = await second.load_current_record()
        finally:
            second.close()

        assert loaded.day_counts == {record.current_day_date: {"berries": 2}}
        assert loaded.period_totals == {"berries": 2}
        assert loaded.metadata.current_week_dirty
        assert loaded.last_modified == NOW


class TestArchiveRecords:
    """Tests for archived weeks."""

    @pytest.mark.asyncio
    async def test_missing_week(self, store: SQLiteDataStore) -> None:
        assert await store.get_archive_record("2026-10-04") is None

    @pytest.mark.asyncio
    async def test_save_replaces_week(self, store: SQLiteDataStore) -> None:
        first = archive_from_period("2026-10-04", {"2026-10-05": {"nuts": 1}}, {}, "d1", NOW)
        second = archive_from_period("2026-10-04", {"2026-10-05": {"nuts": 3}}, {}, "d1", NOW + 1)

        await store.save_archive_record(first)
        await store.save_archive_record(second)

        loaded = await store.get_archive_record("2026-10-04")
        assert loaded.totals == {"nuts": 3}
        assert loaded.updated_at == NOW + 1
        assert len(await store.get_all_archive_records()) == 1

    @pytest.mark.asyncio
    async def test_all_records_oldest_first(self, store: SQLiteDataStore) -> None:
        for anchor in ("2026-10-04", "2026-09-20", "2026-09-27"):
            await store.save_archive_record(archive_from_period(anchor, {}, {}, "d1", NOW))

        records = await store.get_all_archive_records()

        assert [r.anchor_date for r in records] == ["2026-09-20", "2026-09-27", "2026-10-04"]

    @pytest.mark.asyncio
    async def test_targets_snapshot_is_kept(self, store: SQLiteDataStore) -> None:
        targets = {"berries": {"target": 2, "frequency": "week"}}
        await store.save_archive_record(archive_from_period("2026-10-04", {}, targets, "d1", NOW))

        loaded = await store.get_archive_record("2026-10-04")

        assert loaded.targets == targets


class TestPreferences:
    """Tests for key-value preferences."""

    @pytest.mark.asyncio
    async def test_default_when_missing(self, store: SQLiteDataStore) -> None:
        assert await store.get_preference("missing", "fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_json_values(self, store: SQLiteDataStore) -> None:
        await store.save_preference("file_metadata_x", {"id": "a", "rev": "1"})

        assert await store.get_preference("file_metadata_x") == {"id": "a", "rev": "1"}

    @pytest.mark.asyncio
    async def test_none_deletes(self, store: SQLiteDataStore) -> None:
        await store.save_preference("key", 1)
        await store.save_preference("key", None)

        assert await store.get_preference("key") is None

    @pytest.mark.asyncio
    async def test_targets(self, store: SQLiteDataStore) -> None:
        assert await store.get_targets() == {}

        await store.set_targets({"greens": {"target": 6}})

        assert await store.get_targets() == {"greens": {"target": 6}}
