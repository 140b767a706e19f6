"""Core module - Shared configuration, types and date helpers."""

from mindsync.core.config import (
    DEFAULT_AUTO_SYNC_INTERVAL_MINUTES,
    DEFAULT_REDIRECT_URI,
    TARGETS_PREFERENCE,
    SyncSettings,
)
from mindsync.core.dates import (
    days_of_week,
    in_week,
    now_ms,
    today_str,
    week_end_date,
    week_start_date,
)
from mindsync.core.types import ProviderKind, ResetType, SyncPhase

__all__ = [
    # Config
    "DEFAULT_AUTO_SYNC_INTERVAL_MINUTES",
    "DEFAULT_REDIRECT_URI",
    "TARGETS_PREFERENCE",
    "SyncSettings",
    # Dates
    "days_of_week",
    "in_week",
    "now_ms",
    "today_str",
    "week_end_date",
    "week_start_date",
    # Types
    "ProviderKind",
    "ResetType",
    "SyncPhase",
]
