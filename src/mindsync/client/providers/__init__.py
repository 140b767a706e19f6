"""Cloud storage providers.

Providers are selected by their capability tag (ProviderKind), never by
inspecting class names.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from mindsync.client.providers.base import (
    AuthorizationHandler,
    AuthState,
    CloudStorageProvider,
    UnauthorizedError,
)
from mindsync.client.providers.dropbox import DropboxProvider
from mindsync.client.providers.gdrive import GoogleDriveProvider
from mindsync.client.providers.oauth import PendingAuthorization
from mindsync.client.providers.types import FileHandle, UserInfo
from mindsync.core.types import ProviderKind

if TYPE_CHECKING:
    from mindsync.client.keystore import CredentialStore
    from mindsync.core.config import SyncSettings

PROVIDER_CLASSES: dict[ProviderKind, type[CloudStorageProvider]] = {
    ProviderKind.GDRIVE: GoogleDriveProvider,
    ProviderKind.DROPBOX: DropboxProvider,
}


def create_provider(
    settings: SyncSettings,
    credentials: CredentialStore,
    http_client: httpx.AsyncClient | None = None,
    authorization_handler: AuthorizationHandler | None = None,
) -> CloudStorageProvider:
    """Create the provider selected by settings.provider.

    Args:
        settings: Sync settings (provider kind, client ids, redirect URI).
        credentials: Credential store shared with the provider.
        http_client: Optional shared AsyncClient.
        authorization_handler: Interactive step of authenticate().

    Returns:
        Provider instance tagged with the requested kind.
    """
    kind = settings.provider_kind
    client_id = (
        settings.google_client_id if kind is ProviderKind.GDRIVE else settings.dropbox_app_key
    )
    return PROVIDER_CLASSES[kind](
        credentials,
        client_id,
        settings.redirect_uri,
        http_client=http_client,
        timeout=settings.request_timeout,
        authorization_handler=authorization_handler,
    )


__all__ = [
    "AuthState",
    "AuthorizationHandler",
    "CloudStorageProvider",
    "DropboxProvider",
    "FileHandle",
    "GoogleDriveProvider",
    "PROVIDER_CLASSES",
    "PendingAuthorization",
    "UnauthorizedError",
    "UserInfo",
    "create_provider",
]
