"""Shared configuration classes for mindsync.

This module defines the settings consumed by the sync engine and providers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from mindsync.core.types import ProviderKind

DEFAULT_AUTO_SYNC_INTERVAL_MINUTES = 15
DEFAULT_REDIRECT_URI = "http://localhost:8765/callback"
VALID_WEEK_START_DAYS = ("Sunday", "Monday")

# Local store preference holding the targets snapshot used by new archives
TARGETS_PREFERENCE = "targets"


@dataclass
class SyncSettings:
    """Settings for the sync engine.

    Attributes:
        provider: Capability tag of the cloud provider ("gdrive" or "dropbox").
        wifi_only: Only sync on an unmetered network.
        auto_sync_enabled: Whether the periodic sync job is enabled.
        auto_sync_interval_minutes: Interval of the periodic sync job.
        week_start_day: First day of a tracking week ("Sunday" or "Monday").
        always_check_remote: Check the remote revision on every sync, even
            without local changes.
        google_client_id: OAuth client id for Google Drive.
        dropbox_app_key: OAuth app key for Dropbox.
        redirect_uri: OAuth redirect URI registered with both vendors.
        request_timeout: HTTP timeout in seconds.
    """

    provider: str = ProviderKind.GDRIVE.value
    wifi_only: bool = False
    auto_sync_enabled: bool = True
    auto_sync_interval_minutes: int = DEFAULT_AUTO_SYNC_INTERVAL_MINUTES
    week_start_day: str = "Sunday"
    always_check_remote: bool = True
    google_client_id: str = ""
    dropbox_app_key: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate provider kind and week start day."""
        self.provider = ProviderKind(self.provider).value
        if self.week_start_day not in VALID_WEEK_START_DAYS:
            raise ValueError(
                f"week_start_day must be one of {VALID_WEEK_START_DAYS}, "
                f"got {self.week_start_day!r}"
            )
        if self.auto_sync_interval_minutes < 1:
            raise ValueError("auto_sync_interval_minutes must be at least 1")

    @property
    def provider_kind(self) -> ProviderKind:
        """Get the provider capability tag."""
        return ProviderKind(self.provider)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        """Create settings from a config dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return asdict(self)
