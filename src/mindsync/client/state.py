"""Local state management for the sync client.

This module provides:
- LocalDataStore: The capability the sync engine consumes
- SQLiteDataStore: SQLite-based implementation

Architecture:
    Records are stored as their JSON payloads. The current record is a
    single row; archived weeks are keyed by anchor date; preferences
    (including cached revision handles) are a key-value table.

    SQLite calls run in a worker thread through asyncio.to_thread, so
    every operation is awaitable like the provider calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

from mindsync.client.sync.domain.records import ArchiveRecord, TrackingRecord
from mindsync.core.config import TARGETS_PREFERENCE
from mindsync.core.dates import today_str

logger = logging.getLogger(__name__)

CURRENT_RECORD_KEY = "current"


class LocalDataStore(Protocol):
    """Local persistence used by the sync engine."""

    async def load_current_record(self) -> TrackingRecord: ...

    async def save_current_record(self, record: TrackingRecord) -> None: ...

    async def get_archive_record(self, anchor_date: str) -> ArchiveRecord | None: ...

    async def save_archive_record(self, record: ArchiveRecord) -> None: ...

    async def get_all_archive_records(self) -> list[ArchiveRecord]: ...

    async def get_preference(self, key: str, default: Any = None) -> Any: ...

    async def save_preference(self, key: str, value: Any) -> None: ...


class SQLiteDataStore:
    """SQLite-based local store for tracking data and preferences."""

    def __init__(self, db_path: Path, week_start_day: str = "Sunday") -> None:
        """Initialize local state database.

        Args:
            db_path: Path to SQLite database file.
            week_start_day: Week start used when creating a first record.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._week_start_day = week_start_day

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS current_record (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS archive_records (
                anchor_date TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );

            -- Key-value preferences
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Current record ===

    def _load_current(self) -> TrackingRecord:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM current_record WHERE key = ?",
                (CURRENT_RECORD_KEY,),
            ).fetchone()
            if row is not None:
                return TrackingRecord.from_payload(json.loads(row["payload"]))

            record = TrackingRecord.new(today_str(), self._week_start_day)
            logger.info("Created first tracking record (device %s)", record.metadata.device_id)
            self._save_current(record)
            return record

    def _save_current(self, record: TrackingRecord) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO current_record (key, payload) VALUES (?, ?)",
                (CURRENT_RECORD_KEY, json.dumps(record.to_payload())),
            )

    async def load_current_record(self) -> TrackingRecord:
        """Load the current record, creating a fresh-install record if none exists."""
        return await asyncio.to_thread(self._load_current)

    async def save_current_record(self, record: TrackingRecord) -> None:
        """Persist the current record."""
        await asyncio.to_thread(self._save_current, record)

    # === Archive ===

    def _get_archive(self, anchor_date: str) -> ArchiveRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM archive_records WHERE anchor_date = ?",
                (anchor_date,),
            ).fetchone()
        if row is None:
            return None
        return ArchiveRecord.from_payload(json.loads(row["payload"]))

    def _save_archive(self, record: ArchiveRecord) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO archive_records (anchor_date, payload, updated_at)
                VALUES (?, ?, ?)
                """,
                (record.anchor_date, json.dumps(record.to_payload()), record.updated_at),
            )

    def _list_archives(self) -> list[ArchiveRecord]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT payload FROM archive_records ORDER BY anchor_date"
            ).fetchall()
        return [ArchiveRecord.from_payload(json.loads(row["payload"])) for row in rows]

    async def get_archive_record(self, anchor_date: str) -> ArchiveRecord | None:
        """Get the archived week starting at anchor_date."""
        return await asyncio.to_thread(self._get_archive, anchor_date)

    async def save_archive_record(self, record: ArchiveRecord) -> None:
        """Insert or replace an archived week."""
        await asyncio.to_thread(self._save_archive, record)

    async def get_all_archive_records(self) -> list[ArchiveRecord]:
        """List archived weeks, oldest first."""
        return await asyncio.to_thread(self._list_archives)

    # === Preferences ===

    def _get_pref(self, key: str, default: Any) -> Any:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM preferences WHERE key = ?", (key,)
            ).fetchone()
        if row is None or row["value"] is None:
            return default
        return json.loads(row["value"])

    def _set_pref(self, key: str, value: Any) -> None:
        with self._lock:
            if value is None:
                self._conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
            else:
                self._conn.execute(
                    "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )

    async def get_preference(self, key: str, default: Any = None) -> Any:
        """Get a JSON preference value."""
        return await asyncio.to_thread(self._get_pref, key, default)

    async def save_preference(self, key: str, value: Any) -> None:
        """Set a JSON preference value (None deletes it)."""
        await asyncio.to_thread(self._set_pref, key, value)

    # === Targets ===

    async def get_targets(self) -> dict[str, Any]:
        """Get the current targets (food id -> target settings)."""
        return await self.get_preference(TARGETS_PREFERENCE, {})

    async def set_targets(self, targets: dict[str, Any]) -> None:
        """Replace the current targets; archived weeks keep their snapshot."""
        await self.save_preference(TARGETS_PREFERENCE, targets)
