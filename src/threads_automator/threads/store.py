"""Credential store boundary.

The client only needs get/set/delete keyed by account name; where the blob
actually lives (keychain, secret service, encrypted file) is up to the
application embedding this library.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from ..constants import TOKEN_ROTATION_DAYS


class StoredCredentials(BaseModel):
    """Token blob persisted per account."""

    access_token: str = Field(repr=False)
    user_id: str | None = None
    username: str | None = None
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    client_id: str | None = None
    client_secret: str | None = Field(default=None, repr=False)
    redirect_uri: str | None = None

    def needs_rotation(self, days: int = TOKEN_ROTATION_DAYS, now: datetime | None = None) -> bool:
        """True once the token is old enough that it should be refreshed."""
        now = now or datetime.now(timezone.utc)
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return now - created >= timedelta(days=days)


def normalize_account_name(name: str) -> str:
    return name.strip().lower()


class CredentialStore(ABC):
    """Secure storage for per-account token blobs."""

    @abstractmethod
    def get(self, name: str) -> StoredCredentials | None:
        """Return credentials for ``name``, or None if absent."""
        ...

    @abstractmethod
    def set(self, name: str, credentials: StoredCredentials) -> None:
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        ...

    @abstractmethod
    def list(self) -> list[str]:
        """Account names currently stored."""
        ...


class MemoryCredentialStore(CredentialStore):
    """In-process store; nothing survives the process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> StoredCredentials | None:
        with self._lock:
            blob = self._items.get(normalize_account_name(name))
        if blob is None:
            return None
        return StoredCredentials.model_validate_json(blob)

    def set(self, name: str, credentials: StoredCredentials) -> None:
        key = normalize_account_name(name)
        if not key:
            raise ValueError("account name cannot be empty")
        if not credentials.access_token:
            raise ValueError("access token cannot be empty")
        blob = credentials.model_dump_json()
        with self._lock:
            self._items[key] = blob

    def delete(self, name: str) -> None:
        with self._lock:
            self._items.pop(normalize_account_name(name), None)

    def list(self) -> list[str]:
        with self._lock:
            return sorted(self._items)
