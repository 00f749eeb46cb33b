"""Threads access token lifecycle: exchange, long-lived upgrade, refresh.

The TokenManager is the single owner of the current token. Reads and writes
go through one reader/writer lock guarding an immutable TokenState snapshot,
so a reader always sees a whole token, either the old or the new one.
Network round trips happen outside the lock; only the swap is exclusive.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..constants import LONG_LIVED_TOKEN_SECONDS, SHORT_LIVED_TOKEN_SECONDS
from .config import Credentials
from .errors import AuthenticationError, ThreadsError
from .store import CredentialStore, StoredCredentials
from .transport import HTTPTransport, RequestSpec
from .validation import validate_id

_logger = logging.getLogger("threads_auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenState:
    """Immutable snapshot of the current token."""
    access_token: str = field(default="", repr=False)
    user_id: str | None = None
    expires_at: datetime | None = None

    @property
    def is_set(self) -> bool:
        return bool(self.access_token)


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue behind
    it so a refresh cannot be starved by a stream of reads.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TokenManager:
    """Owns the access token and drives its acquisition and renewal.

    Features:
    - Exchange an OAuth authorization code for a short-lived token
    - Upgrade to a long-lived token (60 days), best-effort
    - Refresh a long-lived token before it expires
    - Load/save the token through a CredentialStore
    """

    def __init__(
        self,
        credentials: Credentials,
        transport: HTTPTransport,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize token manager.

        Args:
            credentials: OAuth application credentials
            transport: Transport used for the token endpoints
            clock: Returns the current UTC time (injectable for tests)
        """
        self.credentials = credentials
        self.transport = transport
        self._clock = clock
        self._lock = ReadWriteLock()
        self._state = TokenState()

    # ------------------------------------------------------------------
    # In-memory state
    # ------------------------------------------------------------------

    def current_token(self) -> str:
        """Current access token, or an empty string before authentication."""
        with self._lock.read():
            return self._state.access_token

    def snapshot(self) -> TokenState:
        with self._lock.read():
            return self._state

    @property
    def user_id(self) -> str | None:
        return self.snapshot().user_id

    def set_token(
        self,
        access_token: str,
        user_id: str | None,
        expires_at: datetime | None,
        *,
        reauthenticated: bool = False,
    ) -> TokenState:
        """Replace the token state wholesale.

        Args:
            access_token: New token (must be non-empty)
            user_id: Owning user; when None the current one is kept, except
                on re-authentication, where a new login never inherits it
            expires_at: New expiry (None = unknown)
            reauthenticated: True for a fresh login, the only case where the
                expiry may move backwards

        Raises:
            ValueError: If the token is empty or the expiry would shrink
                without re-authentication
        """
        if not access_token:
            raise ValueError("access token cannot be empty")
        with self._lock.write():
            current = self._state
            if (
                not reauthenticated
                and current.expires_at is not None
                and expires_at is not None
                and expires_at < current.expires_at
            ):
                raise ValueError(
                    "refusing to shorten token expiry without re-authentication"
                )
            self._state = TokenState(
                access_token=access_token,
                user_id=user_id if user_id is not None or reauthenticated else current.user_id,
                expires_at=expires_at,
            )
            return self._state

    def clear(self) -> None:
        """Forget the token (logout / before a fresh login)."""
        with self._lock.write():
            self._state = TokenState()

    def is_expired(self) -> bool:
        state = self.snapshot()
        if not state.is_set:
            return True
        if state.expires_at is None:
            return False
        return state.expires_at <= self._clock()

    def expires_within(self, delta: timedelta) -> bool:
        state = self.snapshot()
        if state.expires_at is None:
            return not state.is_set
        return state.expires_at - self._clock() <= delta

    # ------------------------------------------------------------------
    # OAuth round trips
    # ------------------------------------------------------------------

    async def exchange_code(self, code: str, redirect_uri: str | None = None) -> TokenState:
        """Trade a one-time authorization code for a short-lived token.

        Args:
            code: Authorization code from the OAuth callback
            redirect_uri: Redirect URI the code was issued for, when it differs
                from the configured one (ephemeral callback port)

        Raises:
            ValidationError: If the code is blank
            AuthenticationError: If the server rejects the code
        """
        code = validate_id(code, "code")
        spec = RequestSpec(
            "POST",
            "oauth/access_token",
            data={
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri or self.credentials.redirect_uri,
            },
            versioned=False,
            authenticated=False,
        )
        data = await self._token_request(spec, "Code exchange")
        state = self.set_token(
            data["access_token"],
            _str_or_none(data.get("user_id")),
            self._expiry_from(data, SHORT_LIVED_TOKEN_SECONDS),
            reauthenticated=True,
        )
        _logger.info(f"Exchanged authorization code for user {state.user_id}")
        return state

    async def upgrade_to_long_lived(self) -> bool:
        """Swap the current short-lived token for a long-lived one.

        Best-effort: on failure the existing token stays in place, a warning
        is logged and False is returned.
        """
        current = self.snapshot()
        if not current.is_set:
            _logger.warning("Long-lived upgrade skipped: no token to upgrade")
            return False

        spec = RequestSpec(
            "GET",
            "access_token",
            params={
                "grant_type": "th_exchange_token",
                "client_secret": self.credentials.client_secret,
                "access_token": current.access_token,
            },
            versioned=False,
            authenticated=False,
        )
        try:
            data = await self._token_request(spec, "Long-lived upgrade")
        except ThreadsError as e:
            _logger.warning(f"Failed to get long-lived token, keeping short-lived one: {e}")
            return False

        self.set_token(
            data["access_token"],
            current.user_id,
            self._expiry_from(data, LONG_LIVED_TOKEN_SECONDS),
        )
        _logger.info("Upgraded to long-lived token")
        return True

    async def refresh_long_lived(self) -> TokenState:
        """Refresh a long-lived token for a fresh 60-day window.

        Raises:
            AuthenticationError: If there is no token or the refresh is rejected
        """
        current = self.snapshot()
        if not current.is_set:
            raise AuthenticationError("No access token to refresh; authenticate first")

        spec = RequestSpec(
            "GET",
            "refresh_access_token",
            params={
                "grant_type": "th_refresh_token",
                "access_token": current.access_token,
            },
            versioned=False,
            authenticated=False,
        )
        data = await self._token_request(spec, "Token refresh")
        state = self.set_token(
            data["access_token"],
            current.user_id,
            self._expiry_from(data, LONG_LIVED_TOKEN_SECONDS),
        )
        _logger.info("Refreshed long-lived token")
        return state

    async def _token_request(self, spec: RequestSpec, action: str) -> dict[str, Any]:
        try:
            data = await self.transport.request(spec)
        except AuthenticationError:
            raise
        except ThreadsError as e:
            # 4xx on a token endpoint means the grant itself was rejected
            if e.status_code is not None and e.status_code < 500:
                raise AuthenticationError(
                    f"{action} failed: {e.message}",
                    status_code=e.status_code,
                    request_id=e.request_id,
                    error_code=e.error_code,
                    error_type=e.record.error_type,
                    raw_body=e.raw_body,
                ) from e
            raise

        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthenticationError(f"{action} failed: no access_token in response")
        return data

    def _expiry_from(self, data: dict[str, Any], default_seconds: int) -> datetime:
        try:
            seconds = int(data.get("expires_in") or default_seconds)
        except (TypeError, ValueError):
            seconds = default_seconds
        return self._clock() + timedelta(seconds=seconds)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, store: CredentialStore, name: str, username: str | None = None) -> StoredCredentials:
        """Persist the current token under ``name``."""
        state = self.snapshot()
        if not state.is_set:
            raise AuthenticationError("No access token to save; authenticate first")
        stored = StoredCredentials(
            access_token=state.access_token,
            user_id=state.user_id,
            username=username,
            expires_at=state.expires_at,
            client_id=self.credentials.client_id,
            client_secret=self.credentials.client_secret or None,
            redirect_uri=self.credentials.redirect_uri,
        )
        store.set(name, stored)
        return stored

    def load(self, store: CredentialStore, name: str) -> TokenState | None:
        """Restore the token stored under ``name``; None if absent.

        Loading counts as re-authentication: the stored expiry replaces
        whatever is in memory.
        """
        stored = store.get(name)
        if stored is None:
            return None
        if stored.needs_rotation():
            _logger.warning(f"Token for account '{name}' is due for rotation")
        return self.set_token(
            stored.access_token,
            stored.user_id,
            stored.expires_at,
            reauthenticated=True,
        )


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None
