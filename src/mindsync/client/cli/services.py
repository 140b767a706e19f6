"""Service wiring for CLI commands.

Every command builds its own services from the config directory; nothing
is shared between invocations except the files under ~/.mindsync and the
OS keyring.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mindsync.client.cli.config import get_settings, get_state_db_path
from mindsync.client.keystore import CredentialStore
from mindsync.client.providers import AuthorizationHandler, CloudStorageProvider, create_provider
from mindsync.client.state import SQLiteDataStore
from mindsync.client.sync import SyncCoordinator
from mindsync.core.config import SyncSettings

LAST_SYNC_PREFERENCE = "last_sync_timestamp"


@dataclass
class Services:
    """Objects a command works with."""

    settings: SyncSettings
    store: SQLiteDataStore
    provider: CloudStorageProvider
    coordinator: SyncCoordinator


@asynccontextmanager
async def open_services(
    authorization_handler: AuthorizationHandler | None = None,
    initialize: bool = True,
) -> AsyncIterator[Services]:
    """Build the store, provider and coordinator for one command.

    Args:
        authorization_handler: Interactive step of authenticate().
        initialize: Load credentials (and refresh them if needed).
    """
    settings = get_settings()
    store = SQLiteDataStore(get_state_db_path(), settings.week_start_day)
    provider = create_provider(
        settings, CredentialStore(), authorization_handler=authorization_handler
    )
    try:
        coordinator = SyncCoordinator(provider, store, settings)
        if initialize:
            await coordinator.initialize()
        yield Services(settings, store, provider, coordinator)
    finally:
        await provider.aclose()
        store.close()
