"""Resilient HTTP transport for the Threads Graph API.

Sends one logical request, retrying transient failures (HTTP 429, 5xx and
connection-level errors) with capped exponential backoff. Everything else is
classified and raised immediately.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..constants import REQUEST_TIMEOUT_SECONDS
from .classification import classify_response, is_transient, parse_body
from .config import RetryPolicy
from .errors import APIError, AuthenticationError, NetworkError, RateLimitError, ThreadsError

_api_logger = logging.getLogger("threads_api")

# Never written to logs
SECRET_PARAMS = frozenset({"access_token", "client_secret", "code", "input_token"})

TokenProvider = Callable[[], str | None]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RequestSpec:
    """One API call, built per request and consumed once by the transport."""

    method: str
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] | None = None
    timeout: float | None = None
    # False for the unversioned OAuth endpoints (/oauth/access_token, ...)
    versioned: bool = True
    # False when the caller supplies credentials in params itself
    authenticated: bool = True


def redact_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of params safe to log."""
    return {k: ("***" if k in SECRET_PARAMS else v) for k, v in params.items()}


class HTTPTransport:
    """Builds, sends and retries requests; returns decoded JSON payloads.

    The transport only reads the current token through ``token_provider``; it
    never mutates token state.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str = "v1.0",
        token_provider: TokenProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize the transport.

        Args:
            base_url: API host root, e.g. https://graph.threads.net
            api_version: Version segment prepended to versioned paths
            token_provider: Callable returning the current access token
            retry_policy: Backoff settings (defaults to RetryPolicy())
            timeout: Default per-request timeout in seconds
            client: Pre-built httpx client (tests inject a MockTransport here)
            sleep: Coroutine used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.token_provider = token_provider
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._call_ids = itertools.count(1)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def url_for(self, spec: RequestSpec) -> str:
        path = spec.path.lstrip("/")
        if spec.versioned:
            return f"{self.base_url}/{self.api_version}/{path}"
        return f"{self.base_url}/{path}"

    def backoff_delay(self, attempt: int, error: ThreadsError | None = None) -> float:
        """Delay before retry ``attempt`` (0-indexed).

        A server Retry-After hint can lengthen the delay, but never past the
        policy's max_delay.
        """
        policy = self.retry_policy
        delay = policy.delay_for(attempt)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, min(error.retry_after, policy.max_delay))
        return delay

    async def request(self, spec: RequestSpec) -> Any:
        """Execute a request with retry.

        Returns:
            Decoded JSON body (empty dict for an empty body)

        Raises:
            AuthenticationError, RateLimitError, APIError, NetworkError: the
            last classified error once retries are exhausted, or the first
            non-transient one.
        """
        policy = self.retry_policy
        attempt = 0
        while True:
            try:
                return await self._send_once(spec)
            except ThreadsError as e:
                if not is_transient(e) or attempt >= policy.max_retries:
                    raise
                delay = self.backoff_delay(attempt, e)
                _api_logger.warning(
                    f"{spec.method} {spec.path} failed ({e.kind.value}, status={e.status_code}): "
                    f"retry {attempt + 1}/{policy.max_retries} in {delay:.1f}s"
                )
                await self._sleep(delay)
                attempt += 1

    async def get(self, path: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request(RequestSpec("GET", path, params=params or {}, **kwargs))

    async def post(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        return await self.request(RequestSpec("POST", path, params=params or {}, data=data, **kwargs))

    async def delete(self, path: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        return await self.request(RequestSpec("DELETE", path, params=params or {}, **kwargs))

    async def _send_once(self, spec: RequestSpec) -> Any:
        call_id = next(self._call_ids)
        params = dict(spec.params)
        if spec.authenticated:
            token = self.token_provider() if self.token_provider else None
            if not token:
                raise AuthenticationError("No access token available; authenticate first")
            params["access_token"] = token

        _api_logger.info(
            f"API CALL #{call_id} | {spec.method} {spec.path} | params: {redact_params(params)}"
        )

        try:
            response = await self.client.request(
                spec.method,
                self.url_for(spec),
                params=params,
                data=dict(spec.data) if spec.data is not None else None,
                timeout=spec.timeout if spec.timeout is not None else self.timeout,
            )
        except httpx.TransportError as e:
            _api_logger.error(f"API CALL #{call_id} | NETWORK ERROR: {type(e).__name__}: {e}")
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        except httpx.RequestError as e:
            # redirect loops and undecodable bodies will not fix themselves
            _api_logger.error(f"API CALL #{call_id} | REQUEST ERROR: {type(e).__name__}: {e}")
            raise APIError(f"{type(e).__name__}: {e}") from e

        error = classify_response(response.status_code, response.headers, response.content)
        if error is not None:
            _api_logger.error(
                f"API CALL #{call_id} | ERROR {response.status_code}: {error.message}"
                + (f" (request id {error.request_id})" if error.request_id else "")
            )
            raise error

        payload = parse_body(response.content)
        _api_logger.info(
            f"API CALL #{call_id} | SUCCESS {response.status_code}: "
            f"{list(payload.keys()) if isinstance(payload, dict) else type(payload).__name__}"
        )
        return payload if payload is not None else {}
