"""Exception hierarchy for the Threads API client.

Every failure carries an immutable ErrorRecord so callers can branch on
``error.kind``, ``error.field`` or ``error.status_code`` instead of matching
message strings.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import TYPE_CHECKING, Any

from ..constants import ErrorKind

if TYPE_CHECKING:
    from .models import Container


@dataclass(frozen=True)
class ErrorRecord:
    """Structured, immutable description of a failure."""

    kind: ErrorKind
    message: str
    field: str | None = None
    status_code: int | None = None
    request_id: str | None = None
    error_code: int | None = None
    error_subcode: int | None = None
    error_type: str | None = None
    retry_after: float | None = None
    raw_body: str | None = None


class ThreadsError(Exception):
    """Base exception for all Threads client errors."""

    kind: ErrorKind = ErrorKind.API

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.record = ErrorRecord(kind=self.kind, message=message, **details)

    @property
    def message(self) -> str:
        return self.record.message

    @property
    def field(self) -> str | None:
        return self.record.field

    @property
    def status_code(self) -> int | None:
        return self.record.status_code

    @property
    def request_id(self) -> str | None:
        return self.record.request_id

    @property
    def error_code(self) -> int | None:
        return self.record.error_code

    @property
    def error_subcode(self) -> int | None:
        return self.record.error_subcode

    @property
    def retry_after(self) -> float | None:
        return self.record.retry_after

    @property
    def raw_body(self) -> str | None:
        return self.record.raw_body

    def to_dict(self) -> dict[str, Any]:
        """Render the error envelope consumed by presentation layers."""
        record = asdict(self.record)
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "message": record["message"],
        }
        optional = {
            "field": record["field"],
            "code": record["status_code"],
            "error_code": record["error_code"],
            "type": record["error_type"],
            "request_id": record["request_id"],
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if record["retry_after"] is not None:
            payload["retry_after_seconds"] = int(record["retry_after"])
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status={self.status_code})"


class ValidationError(ThreadsError):
    """Invalid request argument, raised before any network call."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str):
        super().__init__(message, field=field)


class AuthenticationError(ThreadsError):
    """Credential or token invalid, expired or revoked."""

    kind = ErrorKind.AUTHENTICATION


class CSRFError(AuthenticationError):
    """OAuth callback state did not match the expected CSRF token."""


class OAuthError(AuthenticationError):
    """OAuth callback reported an error or lacked an authorization code."""


class RateLimitError(ThreadsError):
    """Rate limit hit; ``retry_after`` holds the server's hint in seconds."""

    kind = ErrorKind.RATE_LIMIT


class APIError(ThreadsError):
    """Generic remote failure."""

    kind = ErrorKind.API


class NetworkError(APIError):
    """Transport-level failure (connection reset, DNS, read timeout)."""

    kind = ErrorKind.NETWORK


class ContainerFailedError(APIError):
    """The server reported a terminal ERROR or EXPIRED container status."""

    def __init__(self, container: "Container"):
        detail = container.error_message or "no detail provided"
        super().__init__(
            f"Container {container.id} is {container.status.value}: {detail}",
        )
        self.container = container


class ThreadsTimeoutError(ThreadsError, TimeoutError):
    """A local deadline expired (poll budget, OAuth wait)."""

    kind = ErrorKind.TIMEOUT
