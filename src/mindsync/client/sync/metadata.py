"""Cached revision handles of remote files.

This module provides:
- FileMetadataManager: Answers "did this remote file change since this
  device last observed or produced it?" without downloading content
- compare_revisions: Ordered comparison of revision indicators

Handles are cached in the local store preferences under
"file_metadata_<logical name>". store_file_metadata() is the only writer,
and callers invoke it only after a download or upload succeeded.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mindsync.client.providers.types import FileHandle
from mindsync.client.sync.types import ProviderError, RemoteChange

if TYPE_CHECKING:
    from mindsync.client.providers.base import CloudStorageProvider
    from mindsync.client.state import LocalDataStore

logger = logging.getLogger(__name__)

METADATA_KEY_PREFIX = "file_metadata_"


def metadata_key(logical_name: str) -> str:
    """Preference key holding the cached handle of a logical file."""
    return f"{METADATA_KEY_PREFIX}{logical_name}"


def compare_revisions(cached: FileHandle, current: FileHandle) -> tuple[bool, str]:
    """Compare two handles through the ordered revision indicators.

    The first indicator present on both handles decides. When no
    indicator is shared, the file is assumed to have changed.

    Returns:
        Tuple of (has_changed, reason).
    """
    cached_values = dict(cached.revision_indicators())
    for field_name, value in current.revision_indicators():
        if field_name in cached_values:
            if cached_values[field_name] == value:
                return False, f"{field_name} unchanged"
            return True, f"{field_name} changed ({cached_values[field_name]} -> {value})"
    return True, "no comparable revision information"


class FileMetadataManager:
    """Stores and compares revision handles per logical file name."""

    def __init__(self, store: LocalDataStore) -> None:
        self._store = store

    async def get_stored_metadata(self, logical_name: str) -> FileHandle | None:
        """Get the last handle this device observed for a logical file."""
        data = await self._store.get_preference(metadata_key(logical_name))
        if not data:
            return None
        return FileHandle.from_dict(data)

    async def store_file_metadata(self, logical_name: str, handle: FileHandle) -> None:
        """Cache the handle observed after a successful download or upload."""
        await self._store.save_preference(metadata_key(logical_name), handle.to_dict())
        logger.debug("Stored revision for %s: %s", logical_name, handle.revision_indicators())

    async def forget(self, logical_name: str) -> None:
        """Drop the cached handle of a logical file."""
        await self._store.save_preference(metadata_key(logical_name), None)

    async def check_remote(
        self,
        logical_name: str,
        file_id: str,
        provider: CloudStorageProvider | None,
    ) -> RemoteChange:
        """Fetch the current handle and compare it with the cached one.

        Any doubt (no provider, nothing cached, metadata unavailable)
        is reported as a change so that the caller downloads.
        Authentication errors propagate.
        """
        if provider is None:
            return RemoteChange(True, "no provider")

        cached = await self.get_stored_metadata(logical_name)
        try:
            current = await provider.get_file_metadata(file_id)
        except ProviderError as e:
            logger.warning("Could not fetch metadata of %s: %s", logical_name, e)
            return RemoteChange(True, f"metadata check failed: {e}")
        if current is None:
            return RemoteChange(True, "remote metadata unavailable")
        if cached is None:
            return RemoteChange(True, "no cached metadata", handle=current)
        if cached.id and cached.id != current.id:
            return RemoteChange(True, "remote file was replaced", handle=current)

        has_changed, reason = compare_revisions(cached, current)
        logger.debug("Remote check for %s: %s", logical_name, reason)
        return RemoteChange(has_changed, reason, handle=current)

    async def check_if_file_changed(
        self,
        logical_name: str,
        file_id: str,
        provider: CloudStorageProvider | None,
    ) -> bool:
        """Whether the remote file changed since it was last observed."""
        return (await self.check_remote(logical_name, file_id, provider)).has_changed
