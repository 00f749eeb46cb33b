"""Shared test fixtures and configuration.

The network boundary is an ``httpx.MockTransport`` driven by FakeGraphAPI,
a scripted stand-in for graph.threads.net. Sleeps are AsyncMocks so retry
and poll tests run instantly and can assert on the delays requested.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from threads_automator.threads.config import Credentials, RetryPolicy
from threads_automator.threads.token_manager import TokenManager
from threads_automator.threads.transport import HTTPTransport

BASE_URL = "https://graph.threads.net"
FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeGraphAPI:
    """Scripted handler for httpx.MockTransport.

    Responses are ``(status, body)`` / ``(status, body, headers)`` tuples or
    exceptions to raise. Routed responses are consumed in order and the last
    one repeats; unrouted requests fall back to the global queue.

    Usage:
        api.route("GET", "/v1.0/me", (200, {"id": "1", "username": "alice"}))
        api.queue((500, {}), (200, {"ok": True}))
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Any]] = defaultdict(list)
        self._queue: list[Any] = []

    def route(self, method: str, path: str, *responses: Any) -> "FakeGraphAPI":
        self._routes[(method, path)].extend(responses)
        return self

    def queue(self, *responses: Any) -> "FakeGraphAPI":
        self._queue.extend(responses)
        return self

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self._routes.get((request.method, request.url.path))
        if scripted:
            response = scripted.pop(0) if len(scripted) > 1 else scripted[0]
        elif self._queue:
            response = self._queue.pop(0)
        else:
            response = (404, {"error": {"message": f"no route for {request.url.path}", "code": 100}})

        if isinstance(response, Exception):
            raise response
        status, body, *rest = response
        headers = rest[0] if rest else None
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)


@pytest.fixture
def graph_api() -> FakeGraphAPI:
    """Create an empty scripted Graph API."""
    return FakeGraphAPI()


@pytest.fixture
def sleep_mock() -> AsyncMock:
    """Sleep replacement that returns immediately and records delays."""
    return AsyncMock()


@pytest.fixture
def http_client(graph_api: FakeGraphAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(graph_api))


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, initial_delay=1.0, max_delay=30.0, backoff_factor=2.0)


@pytest.fixture
def transport(http_client: httpx.AsyncClient, sleep_mock: AsyncMock, retry_policy: RetryPolicy) -> HTTPTransport:
    """Transport with a fixed token, mocked network and instant sleeps."""
    return HTTPTransport(
        BASE_URL,
        token_provider=lambda: "test-token",
        retry_policy=retry_policy,
        client=http_client,
        sleep=sleep_mock,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        client_id="123456",
        client_secret="app-secret",
        redirect_uri="http://127.0.0.1:0/callback",
    )


@pytest.fixture
def token_manager(credentials: Credentials, transport: HTTPTransport) -> TokenManager:
    """Token manager on the mocked transport with a frozen clock."""
    manager = TokenManager(credentials, transport, clock=lambda: FIXED_NOW)
    transport.token_provider = manager.current_token
    return manager


@pytest.fixture
def fixed_now() -> datetime:
    """The frozen 'now' used by the token_manager fixture's clock."""
    return FIXED_NOW
