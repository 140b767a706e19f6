"""Two-phase OAuth authorization (Authorization Code with PKCE).

Phase 1 (initiate) creates a PendingAuthorization, persists it and
returns the vendor's authorize URL. Phase 2 (resume) takes the redirect
callback, checks it against the persisted pending authorization and
exchanges the code for tokens. Between the two phases the process may
exit; the pending authorization survives in the credential store.

States:
    NONE --begin--> PENDING --complete--> (tokens stored) NONE
                       |--expired/mismatch--> NONE (error)
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

from mindsync.client.keystore import OAuthTokens
from mindsync.client.sync.types import AuthenticationRequiredError

# A pending authorization older than this is discarded
PENDING_TTL_MS = 10 * 60 * 1000


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier (43-128 URL-safe characters)."""
    return secrets.token_urlsafe(64)[:96]


def code_challenge(verifier: str) -> str:
    """Compute the S256 PKCE code challenge of a verifier."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass
class PendingAuthorization:
    """An authorization that was initiated but not yet completed."""

    kind: str
    state: str
    code_verifier: str
    redirect_uri: str
    created_at: int

    @classmethod
    def start(cls, kind: str, redirect_uri: str, now: int) -> PendingAuthorization:
        """Create a new pending authorization with fresh state and verifier."""
        return cls(
            kind=kind,
            state=secrets.token_urlsafe(24),
            code_verifier=generate_code_verifier(),
            redirect_uri=redirect_uri,
            created_at=now,
        )

    def is_expired(self, now: int) -> bool:
        return now - self.created_at > PENDING_TTL_MS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingAuthorization:
        return cls(
            kind=data["kind"],
            state=data["state"],
            code_verifier=data["code_verifier"],
            redirect_uri=data["redirect_uri"],
            created_at=int(data["created_at"]),
        )


def build_authorize_url(base_url: str, params: dict[str, str]) -> str:
    """Append query parameters to an authorize endpoint."""
    return f"{base_url}?{urlencode(params)}"


def parse_callback(callback: str) -> tuple[str, str | None]:
    """Extract (code, state) from a redirect URL or a bare code.

    Args:
        callback: Full redirect URL ("http://localhost/callback?code=...")
            or just the authorization code.

    Returns:
        Tuple of (code, state); state is None for a bare code.

    Raises:
        AuthenticationRequiredError: If the vendor reported an error or
            no code is present.
    """
    callback = callback.strip()
    if "?" not in callback and "://" not in callback:
        if not callback:
            raise AuthenticationRequiredError("Empty authorization code")
        return callback, None

    query = parse_qs(urlparse(callback).query)
    if "error" in query:
        description = query.get("error_description", query["error"])[0]
        raise AuthenticationRequiredError(f"Authorization denied: {description}")
    if "code" not in query:
        raise AuthenticationRequiredError("No authorization code in callback URL")
    state = query.get("state", [None])[0]
    return query["code"][0], state


def tokens_from_response(
    data: dict[str, Any],
    now: int,
    previous: OAuthTokens | None = None,
) -> OAuthTokens:
    """Build OAuthTokens from a token endpoint response.

    A refresh response usually omits the refresh token; the previous one
    is kept in that case.
    """
    access_token = data.get("access_token")
    if not access_token:
        raise AuthenticationRequiredError("Token response has no access_token")

    expires_in = data.get("expires_in")
    refresh_token = data.get("refresh_token") or (previous.refresh_token if previous else None)
    hint = previous.account_hint if previous else None
    return OAuthTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now + int(expires_in) * 1000 if expires_in else 0,
        account_hint=data.get("account_id") or hint,
    )
