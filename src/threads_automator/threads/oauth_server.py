"""Local OAuth callback server for the Threads login flow.

One instance drives one login: it owns its CSRF state token and its outcome
future, so several flows (one per account) can run side by side.

Routes (bound to 127.0.0.1 only):
    /          307 redirect to the Threads authorization URL
    /callback  validates state, then exchanges the code in the background
    /success   static confirmation page
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
import webbrowser
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlencode, urlparse

from aiohttp import web

from ..constants import OAUTH_TIMEOUT_SECONDS
from .config import DEFAULT_AUTHORIZE_URL, Credentials
from .errors import CSRFError, OAuthError, ThreadsError, ThreadsTimeoutError
from .models import User
from .token_manager import TokenManager

_logger = logging.getLogger("threads_auth")

STATE_TOKEN_BYTES = 32

SUCCESS_CSP = "default-src 'self'; style-src 'unsafe-inline'"

SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Threads - Authentication Successful</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: #f3f4f6;
            min-height: 100vh;
            display: flex;
            align-items: center;
            justify-content: center;
            margin: 0;
        }
        .card {
            background: white;
            border-radius: 16px;
            padding: 48px;
            text-align: center;
            max-width: 400px;
        }
        h1 { font-size: 24px; color: #1f2937; }
        p { color: #6b7280; line-height: 1.6; }
    </style>
</head>
<body>
    <div class="card">
        <h1>Authentication Successful</h1>
        <p>You can close this window and return to the terminal.</p>
    </div>
</body>
</html>
"""

IdentityFetcher = Callable[[], Awaitable[User]]


@dataclass(frozen=True)
class OAuthResult:
    """Outcome of a completed login."""
    access_token: str = field(repr=False)
    user_id: str | None
    username: str | None
    expires_at: datetime | None


class OAuthCallbackServer:
    """One-shot local HTTP endpoint that completes the OAuth code flow.

    Usage:
        server = OAuthCallbackServer(credentials, token_manager, client.get_me)
        result = await server.run(timeout=300)
    """

    def __init__(
        self,
        credentials: Credentials,
        token_manager: TokenManager,
        fetch_identity: IdentityFetcher,
        authorize_url: str = DEFAULT_AUTHORIZE_URL,
        host: str = "127.0.0.1",
    ):
        """Initialize the callback server.

        Args:
            credentials: OAuth application credentials
            token_manager: Receives the exchanged token
            fetch_identity: "Who am I" call made once the token is in place
            authorize_url: Threads authorization endpoint
            host: Interface to bind (loopback only)
        """
        self.credentials = credentials
        self.token_manager = token_manager
        self.fetch_identity = fetch_identity
        self.authorize_endpoint = authorize_url
        self.host = host
        self.redirect_uri = credentials.redirect_uri
        self._state = secrets.token_hex(STATE_TOKEN_BYTES)

        self.app = web.Application()
        self.app.router.add_get("/", self._handle_root)
        self.app.router.add_get("/callback", self._handle_callback)
        self.app.router.add_get("/success", self._handle_success)

        self._runner: web.AppRunner | None = None
        self._outcome: asyncio.Future[OAuthResult] | None = None
        self._exchange_task: asyncio.Task | None = None
        self.port: int | None = None

    @property
    def state(self) -> str:
        """CSRF state token embedded in the authorization URL."""
        return self._state

    @property
    def authorization_url(self) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": ",".join(self.credentials.scopes),
            "response_type": "code",
            "state": self._state,
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def verify_state(self, state: str | None) -> None:
        """Constant-time CSRF check; a missing or empty state always fails."""
        if not state or not hmac.compare_digest(
            state.encode("utf-8"), self._state.encode("utf-8")
        ):
            raise CSRFError("OAuth state mismatch: possible CSRF attempt")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> str:
        """Bind the listener and return the effective redirect URI.

        A configured port of 0 (or none) picks an ephemeral port and the
        redirect URI is rewritten to use it.
        """
        if self._runner is not None:
            raise RuntimeError("callback server already started")

        parsed = urlparse(self.credentials.redirect_uri)
        configured_port = parsed.port or 0
        self._outcome = asyncio.get_running_loop().create_future()

        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host=self.host, port=configured_port)
        try:
            await site.start()
        except OSError:
            await self._runner.cleanup()
            self._runner = None
            raise

        self.port = self._runner.addresses[0][1]
        if configured_port == 0:
            self.redirect_uri = f"http://{self.host}:{self.port}{parsed.path or '/callback'}"
        _logger.info(f"OAuth callback server listening on {self.host}:{self.port}")
        return self.redirect_uri

    async def stop(self) -> None:
        """Tear down the listener and any in-flight exchange."""
        if self._exchange_task is not None and not self._exchange_task.done():
            self._exchange_task.cancel()
            try:
                await self._exchange_task
            except asyncio.CancelledError:
                pass
        self._exchange_task = None
        if self._outcome is not None:
            if self._outcome.done() and not self._outcome.cancelled():
                # mark a failure nobody waited for as retrieved
                self._outcome.exception()
            elif not self._outcome.done():
                self._outcome.cancel()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            _logger.info("OAuth callback server stopped")

    def shutdown(self) -> None:
        """Abort the flow; whoever is waiting gets an OAuthError."""
        self._fail(OAuthError("Authentication cancelled"))

    async def wait(self, timeout: float | None = OAUTH_TIMEOUT_SECONDS) -> OAuthResult:
        """Wait for the first outcome: success, error, deadline or shutdown.

        Raises:
            CSRFError: If the callback state did not match
            OAuthError: If the provider reported an error, the code was
                missing, or shutdown() was called
            AuthenticationError: If the code exchange failed
            ThreadsTimeoutError: If nothing arrived within ``timeout``
        """
        if self._outcome is None:
            raise RuntimeError("callback server not started")
        try:
            return await asyncio.wait_for(asyncio.shield(self._outcome), timeout=timeout)
        except asyncio.TimeoutError:
            raise ThreadsTimeoutError(
                f"No OAuth callback received within {timeout:.0f} seconds"
            ) from None

    async def run(
        self,
        timeout: float | None = OAUTH_TIMEOUT_SECONDS,
        open_browser: bool = True,
    ) -> OAuthResult:
        """Start, send the user to the authorization page, wait, and always stop."""
        await self.start()
        try:
            url = self.authorization_url
            if not open_browser or not await self._open_browser(url):
                _logger.info(f"Open this URL in your browser to authenticate: {url}")
            return await self.wait(timeout)
        finally:
            await self.stop()

    async def _open_browser(self, url: str) -> bool:
        try:
            return await asyncio.to_thread(webbrowser.open, url)
        except webbrowser.Error as e:
            _logger.warning(f"Could not open browser: {e}")
            return False

    # ------------------------------------------------------------------
    # Outcome signalling (first writer wins)
    # ------------------------------------------------------------------

    def _succeed(self, result: OAuthResult) -> None:
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(result)

    def _fail(self, error: BaseException) -> None:
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_exception(error)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_root(self, request: web.Request) -> web.Response:
        # raw header: HTTPTemporaryRedirect would re-quote the URL through yarl
        return web.Response(status=307, headers={"Location": self.authorization_url})

    async def _handle_callback(self, request: web.Request) -> web.Response:
        try:
            self.verify_state(request.query.get("state"))
        except CSRFError as e:
            _logger.error("OAuth callback rejected: state mismatch")
            self._fail(e)
            return web.Response(text="Invalid state parameter", status=403)

        error = request.query.get("error")
        if error:
            description = request.query.get("error_description", "")
            _logger.error(f"OAuth authorization denied: {error} {description}".rstrip())
            self._fail(OAuthError(
                f"Authorization denied: {error}" + (f" - {description}" if description else ""),
                error_type=error,
            ))
            return web.Response(text=f"Authorization failed: {description or error}", status=400)

        code = request.query.get("code")
        if not code:
            self._fail(OAuthError("Missing authorization code"))
            return web.Response(text="Missing authorization code", status=400)

        if self._exchange_task is None and self._outcome is not None and not self._outcome.done():
            self._exchange_task = asyncio.create_task(self._complete(code))
        raise web.HTTPTemporaryRedirect("/success")

    async def _handle_success(self, request: web.Request) -> web.Response:
        return web.Response(
            text=SUCCESS_PAGE,
            content_type="text/html",
            headers={"Content-Security-Policy": SUCCESS_CSP},
        )

    async def _complete(self, code: str) -> None:
        """Exchange -> long-lived upgrade (best-effort) -> identity fetch."""
        try:
            await self.token_manager.exchange_code(code, redirect_uri=self.redirect_uri)
            await self.token_manager.upgrade_to_long_lived()
            user = await self.fetch_identity()
        except ThreadsError as e:
            _logger.error(f"OAuth code exchange failed: {e}")
            self._fail(e)
            return

        state = self.token_manager.snapshot()
        # the identity call is authoritative for who owns the new token
        if user.id and user.id != state.user_id:
            state = self.token_manager.set_token(state.access_token, user.id, state.expires_at)
        _logger.info(f"Authenticated as @{user.username} ({state.user_id})")
        self._succeed(OAuthResult(
            access_token=state.access_token,
            user_id=state.user_id,
            username=user.username,
            expires_at=state.expires_at,
        ))
