"""Credential storage for cloud providers.

This module provides:
- OAuthTokens: Access/refresh token pair with expiry
- CredentialStore: OS keyring storage of tokens and pending authorizations

Secrets never touch the config file or the local database; they are kept
in the OS keyring, one JSON entry per provider kind and purpose.
"""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from mindsync.core.dates import now_ms

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "mindsync"

# Treat a token as expired slightly before its real expiry
EXPIRY_MARGIN_MS = 60_000


class CredentialStoreError(Exception):
    """The OS keyring could not store a credential."""


@dataclass
class OAuthTokens:
    """OAuth credentials for one provider.

    Attributes:
        access_token: Bearer token for API calls (may be empty).
        refresh_token: Long-lived token used to obtain new access tokens.
        expires_at: Access token expiry (epoch ms), 0 if unknown.
        account_hint: Login hint (email or account id) for re-authorization.
    """

    access_token: str = ""
    refresh_token: str | None = None
    expires_at: int = 0
    account_hint: str | None = None

    def is_expired(self, now: int | None = None) -> bool:
        """Check whether the access token is missing or expired."""
        if not self.access_token:
            return True
        if not self.expires_at:
            return False
        return (now if now is not None else now_ms()) >= self.expires_at - EXPIRY_MARGIN_MS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OAuthTokens:
        """Create from a stored dictionary."""
        return cls(
            access_token=data.get("access_token") or "",
            refresh_token=data.get("refresh_token"),
            expires_at=int(data.get("expires_at") or 0),
            account_hint=data.get("account_hint"),
        )


class CredentialStore:
    """Keyring-backed storage of provider credentials.

    Entries are keyed "<kind>:tokens" and "<kind>:pending" under the
    "mindsync" keyring service.
    Every call blocks on the keyring backend; providers run them in a
    worker thread.
    """

    def __init__(self, service_name: str = KEYRING_SERVICE) -> None:
        self._service = service_name

    def _get(self, key: str) -> dict[str, Any] | None:
        raw = keyring.get_password(self._service, key)
        if not raw:
            return None
        try:
            return dict(json.loads(raw))
        except (ValueError, TypeError):
            logger.warning("Ignoring corrupted keyring entry %s", key)
            return None

    def _set(self, key: str, value: dict[str, Any]) -> None:
        try:
            keyring.set_password(self._service, key, json.dumps(value))
        except KeyringError as e:
            raise CredentialStoreError(f"Could not store {key} in keyring: {e}") from e

    def _delete(self, key: str) -> None:
        with contextlib.suppress(PasswordDeleteError):
            keyring.delete_password(self._service, key)

    # === Tokens ===

    def load_tokens(self, kind: str) -> OAuthTokens | None:
        """Load stored tokens for a provider kind."""
        data = self._get(f"{kind}:tokens")
        return OAuthTokens.from_dict(data) if data else None

    def save_tokens(self, kind: str, tokens: OAuthTokens) -> None:
        """Store tokens for a provider kind."""
        self._set(f"{kind}:tokens", asdict(tokens))

    def clear_tokens(self, kind: str) -> None:
        """Forget stored tokens for a provider kind."""
        self._delete(f"{kind}:tokens")

    # === Pending authorization ===

    def load_pending(self, kind: str) -> dict[str, Any] | None:
        """Load a pending authorization started by begin_authorization()."""
        return self._get(f"{kind}:pending")

    def save_pending(self, kind: str, pending: dict[str, Any]) -> None:
        """Persist a pending authorization so it can be resumed later."""
        self._set(f"{kind}:pending", pending)

    def clear_pending(self, kind: str) -> None:
        """Forget a pending authorization."""
        self._delete(f"{kind}:pending")
