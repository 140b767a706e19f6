"""Shared types for mindsync.

This module defines enums used across the client components.
"""

from __future__ import annotations

from enum import Enum


class SyncPhase(str, Enum):
    """Current phase of the sync engine.

    Reported by SyncCoordinator.status() so that callers (CLI, scheduler)
    can present the state without inspecting engine internals.
    """

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    OFFLINE = "offline"


class ProviderKind(str, Enum):
    """Capability tag of a cloud storage provider."""

    GDRIVE = "gdrive"
    DROPBOX = "dropbox"


class ResetType(str, Enum):
    """Kind of date rollover performed on the current record."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
