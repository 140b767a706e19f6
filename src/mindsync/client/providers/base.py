"""Cloud storage provider capability.

This module provides:
- AuthState: Authentication state machine states
- CloudStorageProvider: Base class shared by all vendor adapters

Authentication state machine:
    UNAUTHENTICATED --authorize/initialize--> AUTHENTICATED
    AUTHENTICATED --401 observed--> REFRESHING
    REFRESHING --refresh ok--> AUTHENTICATED (operation retried once)
    REFRESHING --refresh failed--> UNAUTHENTICATED (credentials cleared)

An operation is retried at most once after a refresh; a second
authorization failure clears stored credentials and raises
AuthenticationRequiredError.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from mindsync.client.providers.oauth import (
    PendingAuthorization,
    build_authorize_url,
    code_challenge,
    parse_callback,
    tokens_from_response,
)
from mindsync.client.providers.types import FileHandle, UserInfo
from mindsync.client.sync.types import (
    AuthenticationRequiredError,
    NotFoundError,
    ProviderError,
    ProviderTransientError,
    SyncError,
)
from mindsync.core.config import DEFAULT_REDIRECT_URI
from mindsync.core.dates import now_ms

if TYPE_CHECKING:
    from mindsync.client.keystore import CredentialStore, OAuthTokens
    from mindsync.core.types import ProviderKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Receives the authorize URL, returns the redirect callback (or None to abort)
AuthorizationHandler = Callable[[str], Awaitable[str | None]]


class UnauthorizedError(SyncError):
    """The provider rejected the access token (HTTP 401)."""


class AuthState(Enum):
    """Authentication state of a provider."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class CloudStorageProvider(ABC):
    """Base class of cloud storage adapters.

    Subclasses set the kind tag and OAuth endpoints and implement the
    underscore-prefixed primitives; the public operations add the
    authentication lifecycle on top of them.
    """

    kind: ProviderKind
    authorize_endpoint: str
    token_endpoint: str

    def __init__(
        self,
        credentials: CredentialStore,
        client_id: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        *,
        client_secret: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        authorization_handler: AuthorizationHandler | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the provider.

        Args:
            credentials: Keyring-backed credential store.
            client_id: OAuth client id / app key.
            redirect_uri: Registered OAuth redirect URI.
            client_secret: OAuth client secret, when the vendor requires one.
            http_client: Shared AsyncClient (created if not provided).
            timeout: Request timeout in seconds for a created client.
            authorization_handler: Interactive step of authenticate().
            clock: Returns the current time in epoch ms.
        """
        self._credentials = credentials
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._authorization_handler = authorization_handler
        self._clock = clock
        self._tokens: OAuthTokens | None = None
        self._state = AuthState.UNAUTHENTICATED

    async def __aenter__(self) -> CloudStorageProvider:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_http:
            await self._http.aclose()

    # === Authentication state ===

    @property
    def auth_state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.AUTHENTICATED

    @property
    def needs_refresh(self) -> bool:
        """True when only a refresh credential is usable."""
        return (
            self._tokens is not None
            and bool(self._tokens.refresh_token)
            and self._tokens.is_expired(self._clock())
        )

    async def has_pending_authorization(self) -> bool:
        """True when a started authorization is waiting for its callback."""
        return await self._keystore(self._credentials.load_pending, self.kind.value) is not None

    async def _keystore(self, method: Callable[..., T], *args: Any) -> T:
        # OS keyring backends may block on IPC or an unlock prompt
        return await asyncio.to_thread(method, *args)

    def _set_state(self, state: AuthState) -> None:
        if state is not self._state:
            logger.debug("%s auth state: %s -> %s", self.kind.value, self._state.value, state.value)
            self._state = state

    async def initialize(self) -> bool:
        """Load stored credentials.

        Returns:
            True if a valid access credential is available.
        """
        self._tokens = await self._keystore(self._credentials.load_tokens, self.kind.value)
        if self._tokens is not None and not self._tokens.is_expired(self._clock()):
            self._set_state(AuthState.AUTHENTICATED)
        else:
            self._set_state(AuthState.UNAUTHENTICATED)
        return self.is_authenticated

    async def check_auth(self) -> bool:
        """Verify the session against the vendor API."""
        if self._tokens is None:
            return False
        try:
            await self._with_auth(self._verify_session)
        except AuthenticationRequiredError:
            return False
        return True

    async def refresh_token(self) -> bool:
        """Exchange the refresh credential for a new access token.

        Returns:
            True on success, False if the vendor rejected the refresh.

        Raises:
            ProviderTransientError: On network failure, rate limiting or a
                server error; the previous state is restored.
        """
        if self._tokens is None or not self._tokens.refresh_token:
            self._set_state(AuthState.UNAUTHENTICATED)
            return False

        previous_state = self._state
        self._set_state(AuthState.REFRESHING)
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._tokens.refresh_token,
            "client_id": self._client_id,
        }
        if self._client_secret:
            data["client_secret"] = self._client_secret

        try:
            response = await self._http.post(self.token_endpoint, data=data)
        except httpx.TransportError as e:
            self._set_state(previous_state)
            raise ProviderTransientError(f"Token refresh failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            self._set_state(previous_state)
            raise ProviderTransientError(
                f"Token refresh failed ({response.status_code})",
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                "%s token refresh rejected (%d)", self.kind.value, response.status_code
            )
            self._set_state(AuthState.UNAUTHENTICATED)
            return False

        self._tokens = tokens_from_response(response.json(), self._clock(), self._tokens)
        await self._keystore(self._credentials.save_tokens, self.kind.value, self._tokens)
        self._set_state(AuthState.AUTHENTICATED)
        logger.info("%s access token refreshed", self.kind.value)
        return True

    async def clear_stored_auth(self) -> None:
        """Forget all credentials, forcing interactive re-authorization."""
        self._tokens = None
        await self._keystore(self._credentials.clear_tokens, self.kind.value)
        await self._keystore(self._credentials.clear_pending, self.kind.value)
        self._set_state(AuthState.UNAUTHENTICATED)

    # === Two-phase authorization ===

    def _extra_authorize_params(self) -> dict[str, str]:
        return {}

    async def begin_authorization(self) -> str:
        """Phase 1: persist a pending authorization and return the authorize URL."""
        pending = PendingAuthorization.start(self.kind.value, self._redirect_uri, self._clock())
        await self._keystore(self._credentials.save_pending, self.kind.value, pending.to_dict())
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": pending.redirect_uri,
            "state": pending.state,
            "code_challenge": code_challenge(pending.code_verifier),
            "code_challenge_method": "S256",
            **self._extra_authorize_params(),
        }
        logger.info("%s authorization started", self.kind.value)
        return build_authorize_url(self.authorize_endpoint, params)

    async def complete_authorization(self, callback: str) -> bool:
        """Phase 2: exchange the callback code of the pending authorization.

        Args:
            callback: Redirect URL received from the vendor, or a bare code.

        Returns:
            True once tokens are stored.

        Raises:
            AuthenticationRequiredError: If nothing is pending, the pending
                authorization expired, the state does not match, or the
                exchange was rejected.
        """
        kind = self.kind.value
        data = await self._keystore(self._credentials.load_pending, kind)
        if data is None:
            raise AuthenticationRequiredError("No pending authorization to resume")

        pending = PendingAuthorization.from_dict(data)
        now = self._clock()
        if pending.is_expired(now):
            await self._keystore(self._credentials.clear_pending, kind)
            raise AuthenticationRequiredError("Pending authorization expired, start again")

        code, state = parse_callback(callback)
        if state is not None and state != pending.state:
            await self._keystore(self._credentials.clear_pending, kind)
            raise AuthenticationRequiredError("Authorization state mismatch")

        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": pending.redirect_uri,
            "client_id": self._client_id,
            "code_verifier": pending.code_verifier,
        }
        if self._client_secret:
            form["client_secret"] = self._client_secret

        try:
            response = await self._http.post(self.token_endpoint, data=form)
        except httpx.TransportError as e:
            raise ProviderTransientError(f"Code exchange failed: {e}") from e
        if not response.is_success:
            await self._keystore(self._credentials.clear_pending, kind)
            raise AuthenticationRequiredError(
                f"Code exchange rejected ({response.status_code})"
            )

        self._tokens = tokens_from_response(response.json(), now)
        await self._keystore(self._credentials.save_tokens, kind, self._tokens)
        await self._keystore(self._credentials.clear_pending, kind)
        self._set_state(AuthState.AUTHENTICATED)
        logger.info("%s authorization completed", kind)
        return True

    async def authenticate(self) -> bool:
        """Run interactive authorization.

        Without an authorization handler only phase 1 runs: the pending
        authorization is persisted and False is returned; it is completed
        later with complete_authorization().
        """
        url = await self.begin_authorization()
        if self._authorization_handler is None:
            logger.info("Authorization pending, open %s and resume with the callback", url)
            return False
        callback = await self._authorization_handler(url)
        if not callback:
            logger.info("%s authorization cancelled", self.kind.value)
            return False
        return await self.complete_authorization(callback)

    # === Authenticated operations ===

    async def _with_auth(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation, refreshing and retrying exactly once on 401."""
        if self._tokens is None:
            raise AuthenticationRequiredError(f"Not connected to {self.kind.value}")

        try:
            return await operation()
        except UnauthorizedError:
            logger.info("%s rejected the access token, refreshing", self.kind.value)

        if not await self.refresh_token():
            await self.clear_stored_auth()
            raise AuthenticationRequiredError("Token refresh failed, re-authorization required")

        try:
            return await operation()
        except UnauthorizedError as e:
            await self.clear_stored_auth()
            raise AuthenticationRequiredError(
                "Authorization failed after token refresh"
            ) from e

    def _auth_headers(self) -> dict[str, str]:
        token = self._tokens.access_token if self._tokens else ""
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authorized request and map failures to sync errors."""
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise ProviderTransientError(f"{method} {url} failed: {e}") from e
        self._handle_response(response)
        return response

    def _handle_response(self, response: httpx.Response) -> None:
        """Handle API response and raise appropriate exceptions."""
        if response.is_success:
            return

        status = response.status_code
        message = f"{response.request.method} {response.request.url} returned {status}"
        if status == 401:
            raise UnauthorizedError(message)
        if status == 404:
            raise NotFoundError(message)
        if status == 429 or status >= 500:
            raise ProviderTransientError(message, status_code=status)
        raise ProviderError(f"{message}: {response.text[:200]}", status_code=status)

    async def search_file(self, name: str) -> FileHandle | None:
        """Find an app file by name."""
        return await self._with_auth(lambda: self._search_file(name))

    async def find_or_create_file(self, name: str) -> FileHandle:
        """Find an app file by name, creating an empty one if missing."""

        async def find_or_create() -> FileHandle:
            handle = await self._search_file(name)
            if handle is None:
                logger.info("Creating remote file %s", name)
                handle = await self._create_file(name)
            return handle

        return await self._with_auth(find_or_create)

    async def download_file(self, file_id: str) -> dict[str, Any]:
        """Download a JSON file; a missing or empty file yields {}."""

        async def download() -> dict[str, Any]:
            try:
                return await self._download_file(file_id)
            except NotFoundError:
                logger.debug("Remote file %s not found, treating as empty", file_id)
                return {}

        return await self._with_auth(download)

    async def upload_file(self, file_id: str, data: dict[str, Any]) -> FileHandle:
        """Overwrite a JSON file and return its new handle."""
        return await self._with_auth(lambda: self._upload_file(file_id, data))

    async def get_file_metadata(self, file_id: str) -> FileHandle | None:
        """Get the current handle of a file, or None if it does not exist."""

        async def metadata() -> FileHandle | None:
            try:
                return await self._get_file_metadata(file_id)
            except NotFoundError:
                return None

        return await self._with_auth(metadata)

    async def clear_all_app_files(self) -> int:
        """Delete every file owned by the app.

        Returns:
            Number of files deleted.
        """

        async def clear() -> int:
            deleted = 0
            for handle in await self._list_app_files():
                try:
                    await self._delete_file(handle.id)
                except NotFoundError:
                    continue
                deleted += 1
            return deleted

        count = await self._with_auth(clear)
        logger.info("Deleted %d app files from %s", count, self.kind.value)
        return count

    async def get_user_info(self) -> UserInfo | None:
        """Get the connected account, or None if it cannot be determined."""
        try:
            return await self._with_auth(self._get_user_info)
        except ProviderError as e:
            logger.warning("Could not fetch %s account: %s", self.kind.value, e)
            return None

    async def _verify_session(self) -> None:
        await self._get_user_info()

    # === Vendor primitives ===

    @abstractmethod
    async def _search_file(self, name: str) -> FileHandle | None: ...

    @abstractmethod
    async def _create_file(self, name: str) -> FileHandle: ...

    @abstractmethod
    async def _download_file(self, file_id: str) -> dict[str, Any]: ...

    @abstractmethod
    async def _upload_file(self, file_id: str, data: dict[str, Any]) -> FileHandle: ...

    @abstractmethod
    async def _get_file_metadata(self, file_id: str) -> FileHandle: ...

    @abstractmethod
    async def _list_app_files(self) -> list[FileHandle]: ...

    @abstractmethod
    async def _delete_file(self, file_id: str) -> None: ...

    @abstractmethod
    async def _get_user_info(self) -> UserInfo: ...
