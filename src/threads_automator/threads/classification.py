"""Pure mapping from HTTP responses to typed Threads errors.

Nothing here touches the network; the transport hands in the status code,
headers and body it received and gets back either ``None`` (success) or the
exception to raise.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from ..constants import AUTH_ERROR_CODES, RATE_LIMIT_ERROR_CODES
from .errors import (
    APIError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ThreadsError,
)

REQUEST_ID_HEADERS = ("x-fb-trace-id", "x-fb-request-id", "x-request-id")


def parse_body(body: bytes | str | None) -> Any:
    """Decode a JSON body, returning None for empty or non-JSON payloads."""
    if not body:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        return json.loads(body)
    except ValueError:
        return None


def extract_request_id(headers: Mapping[str, str]) -> str | None:
    """Return the first correlation id header present, if any."""
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in REQUEST_ID_HEADERS:
        value = lowered.get(name)
        if value:
            return value
    return None


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    """Parse a Retry-After header expressed in seconds."""
    lowered = {k.lower(): v for k, v in headers.items()}
    value = lowered.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


def classify_response(
    status_code: int,
    headers: Mapping[str, str],
    body: bytes | str | None,
) -> ThreadsError | None:
    """Classify a response into None (success) or a typed error.

    Args:
        status_code: HTTP status code.
        headers: Response headers.
        body: Raw response body.

    Returns:
        None for a 2xx response without an embedded error object, otherwise
        the AuthenticationError / RateLimitError / APIError to raise.
    """
    payload = parse_body(body)
    error = payload.get("error") if isinstance(payload, dict) else None
    if 200 <= status_code < 300 and not isinstance(error, dict):
        return None

    raw_body = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    request_id = extract_request_id(headers)

    message = f"HTTP {status_code}"
    error_code = error_subcode = None
    error_type = None
    if isinstance(error, dict):
        message = error.get("message") or message
        error_code = _as_int(error.get("code"))
        error_subcode = _as_int(error.get("error_subcode"))
        error_type = error.get("type")
        request_id = request_id or error.get("fbtrace_id")

    details = dict(
        status_code=status_code,
        request_id=request_id,
        error_code=error_code,
        error_subcode=error_subcode,
        error_type=error_type,
        raw_body=raw_body,
    )

    if status_code in (401, 403) or error_type == "OAuthException" or error_code in AUTH_ERROR_CODES:
        # OAuthException with a throttling code is still a rate limit
        if error_code not in RATE_LIMIT_ERROR_CODES:
            return AuthenticationError(message, **details)

    if status_code == 429 or error_code in RATE_LIMIT_ERROR_CODES:
        return RateLimitError(message, retry_after=parse_retry_after(headers), **details)

    return APIError(message, **details)


def is_transient_status(status_code: int | None) -> bool:
    """429 and 5xx are worth retrying; everything else is final."""
    if status_code is None:
        return False
    return status_code == 429 or 500 <= status_code <= 599


def is_transient(error: ThreadsError) -> bool:
    """Decide whether a classified error should be retried.

    Retries are keyed on the HTTP status, not the error kind: a usage-limit
    error code carried on a 400 is surfaced immediately as a RateLimitError.
    """
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, AuthenticationError):
        return False
    return is_transient_status(error.status_code)


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
