"""Threads API client facade.

Wires the transport, token manager, container publisher and pagination
together behind one object and exposes thin endpoint wrappers.

API Reference:
https://developers.facebook.com/docs/threads
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import httpx

from ..constants import THREADS_PAGE_LIMIT_DEFAULT, MediaType, ReplyControl
from .config import Credentials, ThreadsSettings
from .errors import ValidationError
from .models import Insight, MediaSpec, Post, PublishingLimit, PublishResult, User
from .oauth_server import OAuthCallbackServer, OAuthResult
from .pagination import PageIterator, decode_page
from .publisher import ContainerPublisher
from .store import CredentialStore, MemoryCredentialStore
from .token_manager import TokenManager, TokenState
from .transport import HTTPTransport, RequestSpec
from .validation import (
    ACCOUNT_INSIGHT_METRICS,
    POST_INSIGHT_METRICS,
    normalize_id,
    validate_alt_text,
    validate_breakdown,
    validate_date_range,
    validate_https_url,
    validate_id,
    validate_metrics,
    validate_poll_options,
    validate_reply_control,
    validate_text,
)

_api_logger = logging.getLogger("threads_api")

USER_FIELDS = "id,username,name,threads_profile_picture_url,threads_biography"
POST_FIELDS = (
    "id,media_product_type,media_type,media_url,permalink,owner,username,"
    "text,timestamp,shortcode,thumbnail_url,is_quote_post,is_reply"
)
REPLY_FIELDS = "id,text,username,permalink,timestamp,media_type,is_reply,hide_status"
PUBLISHING_LIMIT_FIELDS = "quota_usage,config,reply_quota_usage,reply_config"
SEARCH_TYPES = ("TOP", "RECENT")


class ThreadsClient:
    """Async client for the Threads API.

    Usage:
        async with ThreadsClient(load_threads_config()) as client:
            await client.login()
            result = await client.create_text_post("Hello from the API")
            print(result.permalink)
    """

    def __init__(
        self,
        settings: ThreadsSettings | Credentials | None = None,
        transport: HTTPTransport | None = None,
        store: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            settings: Full settings, or bare OAuth credentials
            transport: Pre-built transport (its token provider is wired to
                this client's token manager when unset)
            store: Credential store for save_token/load_token
            http_client: httpx client handed to a newly built transport
            sleep: Coroutine used for retry backoff and container polling
        """
        if isinstance(settings, Credentials):
            settings = ThreadsSettings(
                client_id=settings.client_id,
                client_secret=settings.client_secret,
                redirect_uri=settings.redirect_uri,
                scopes=list(settings.scopes),
            )
        self.settings = settings or ThreadsSettings()
        self.credentials = self.settings.credentials()

        if transport is None:
            transport = HTTPTransport(
                self.settings.api_base_url,
                api_version=self.settings.api_version,
                retry_policy=self.settings.retry,
                timeout=self.settings.request_timeout,
                client=http_client,
                sleep=sleep,
            )
        self.transport = transport
        self.tokens = TokenManager(self.credentials, transport)
        if self.transport.token_provider is None:
            self.transport.token_provider = self.tokens.current_token

        self.publisher = ContainerPublisher(
            transport,
            user_id=lambda: self.tokens.user_id,
            poll=self.settings.poll,
            sleep=sleep,
        )
        self.store = store or MemoryCredentialStore()

        if self.settings.access_token:
            self.tokens.set_token(
                self.settings.access_token,
                self.settings.user_id,
                None,
                reauthenticated=True,
            )

    async def __aenter__(self) -> "ThreadsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def oauth_server(self) -> OAuthCallbackServer:
        """Build a fresh callback server for one login flow."""
        missing = self.settings.missing_credentials()
        if missing:
            raise ValidationError(
                missing[0].split(" ")[0],
                f"Missing required credentials: {', '.join(missing)}",
            )
        return OAuthCallbackServer(
            self.credentials,
            self.tokens,
            self.get_me,
            authorize_url=self.settings.authorize_url,
        )

    async def login(
        self,
        timeout: float | None = None,
        open_browser: bool = True,
        account_name: str | None = None,
    ) -> OAuthResult:
        """Run the browser OAuth flow; optionally persist the token."""
        server = self.oauth_server()
        if timeout is None:
            result = await server.run(open_browser=open_browser)
        else:
            result = await server.run(timeout=timeout, open_browser=open_browser)
        if account_name:
            self.tokens.save(self.store, account_name, username=result.username)
        return result

    async def refresh_token(self) -> TokenState:
        return await self.tokens.refresh_long_lived()

    def save_token(self, account_name: str, username: str | None = None) -> None:
        self.tokens.save(self.store, account_name, username=username)

    def load_token(self, account_name: str) -> TokenState | None:
        return self.tokens.load(self.store, account_name)

    def _user_path(self, user_id: str | None = None) -> str:
        if user_id is not None:
            return normalize_id(user_id, "user")
        return self.tokens.user_id or "me"

    # ------------------------------------------------------------------
    # Users and posts
    # ------------------------------------------------------------------

    async def get_me(self) -> User:
        data = await self.transport.request(RequestSpec("GET", "me", params={"fields": USER_FIELDS}))
        return User.from_api(data)

    async def get_user(self, user_id: str) -> User:
        user_id = normalize_id(user_id, "user")
        data = await self.transport.request(RequestSpec("GET", user_id, params={"fields": USER_FIELDS}))
        return User.from_api(data)

    async def get_post(self, post_id: str) -> Post:
        post_id = normalize_id(post_id, "post")
        data = await self.transport.request(RequestSpec("GET", post_id, params={"fields": POST_FIELDS}))
        return Post.from_api(data)

    async def delete_post(self, post_id: str) -> bool:
        post_id = normalize_id(post_id, "post")
        data = await self.transport.request(RequestSpec("DELETE", post_id))
        deleted = bool(data.get("success", True)) if isinstance(data, dict) else True
        _api_logger.info(f"Deleted post {post_id}: {deleted}")
        return deleted

    def iter_user_posts(self, user_id: str | None = None, limit: int = THREADS_PAGE_LIMIT_DEFAULT) -> PageIterator[Post]:
        """Posts of ``user_id`` (default: the authenticated user), newest first."""
        return PageIterator(
            self.transport,
            f"{self._user_path(user_id)}/threads",
            params={"fields": POST_FIELDS},
            parse_item=Post.from_api,
            limit=limit,
        )

    def iter_replies(self, post_id: str, limit: int = THREADS_PAGE_LIMIT_DEFAULT) -> PageIterator[Post]:
        """Top-level replies to a post."""
        post_id = normalize_id(post_id, "post")
        return PageIterator(
            self.transport,
            f"{post_id}/replies",
            params={"fields": REPLY_FIELDS},
            parse_item=Post.from_api,
            limit=limit,
        )

    def iter_conversation(self, post_id: str, limit: int = THREADS_PAGE_LIMIT_DEFAULT) -> PageIterator[Post]:
        """Every reply in a post's conversation, flattened."""
        post_id = normalize_id(post_id, "post")
        return PageIterator(
            self.transport,
            f"{post_id}/conversation",
            params={"fields": REPLY_FIELDS},
            parse_item=Post.from_api,
            limit=limit,
        )

    def keyword_search(
        self,
        query: str,
        limit: int = THREADS_PAGE_LIMIT_DEFAULT,
        search_type: str = "TOP",
    ) -> PageIterator[Post]:
        query = validate_id(query, "query")
        search_type = search_type.upper()
        if search_type not in SEARCH_TYPES:
            raise ValidationError("search_type", f"search_type must be one of {', '.join(SEARCH_TYPES)}")
        return PageIterator(
            self.transport,
            "keyword_search",
            params={"q": query, "search_type": search_type, "fields": POST_FIELDS},
            parse_item=Post.from_api,
            limit=limit,
        )

    async def get_publishing_limit(self) -> PublishingLimit:
        data = await self.transport.request(
            RequestSpec(
                "GET",
                f"{self._user_path()}/threads_publishing_limit",
                params={"fields": PUBLISHING_LIMIT_FIELDS},
            )
        )
        page = decode_page(data, lambda item: item)
        return PublishingLimit.from_api(page.items[0] if page.items else {})

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    async def get_post_insights(self, post_id: str, metrics: Sequence[str] | None = None) -> list[Insight]:
        post_id = normalize_id(post_id, "post")
        metrics = validate_metrics(metrics or sorted(POST_INSIGHT_METRICS), POST_INSIGHT_METRICS)
        data = await self.transport.request(
            RequestSpec("GET", f"{post_id}/insights", params={"metric": ",".join(metrics)})
        )
        return decode_page(data, Insight.from_api).items

    async def get_account_insights(
        self,
        metrics: Sequence[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        breakdown: str | None = None,
    ) -> list[Insight]:
        """Account-level insights for the authenticated user.

        Args:
            metrics: Metric names (default: views, likes, replies, reposts, quotes)
            since: Window start (inclusive)
            until: Window end
            breakdown: Demographic breakdown; only valid with follower_demographics
        """
        metrics = validate_metrics(
            metrics or ["views", "likes", "replies", "reposts", "quotes"],
            ACCOUNT_INSIGHT_METRICS,
        )
        since, until = validate_date_range(since, until, datetime.now(timezone.utc))
        breakdown = validate_breakdown(breakdown)
        if breakdown and "follower_demographics" not in metrics:
            raise ValidationError("breakdown", "breakdown requires the follower_demographics metric")

        params: dict[str, Any] = {"metric": ",".join(metrics)}
        if since is not None:
            params["since"] = int(since.timestamp())
        if until is not None:
            params["until"] = int(until.timestamp())
        if breakdown:
            params["breakdown"] = breakdown

        data = await self.transport.request(
            RequestSpec("GET", f"{self._user_path()}/threads_insights", params=params)
        )
        return decode_page(data, Insight.from_api).items

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def create_text_post(
        self,
        text: str,
        reply_to_id: str | None = None,
        reply_control: ReplyControl | str | None = None,
        topic_tag: str | None = None,
        poll_options: Sequence[str] | None = None,
    ) -> PublishResult:
        """Publish a text post (optionally a reply or a poll)."""
        spec = MediaSpec(
            media_type=MediaType.TEXT,
            text=validate_text(text, "text", required=not poll_options),
            reply_to_id=self._reply_target(reply_to_id),
            reply_control=validate_reply_control(reply_control),
            topic_tag=topic_tag,
            poll_options=validate_poll_options(poll_options) if poll_options else (),
        )
        return await self.publisher.publish_spec(spec)

    async def create_image_post(
        self,
        image_url: str,
        text: str = "",
        alt_text: str = "",
        reply_to_id: str | None = None,
        reply_control: ReplyControl | str | None = None,
        topic_tag: str | None = None,
    ) -> PublishResult:
        spec = MediaSpec(
            media_type=MediaType.IMAGE,
            media_url=validate_https_url(image_url, "media_url"),
            text=validate_text(text),
            alt_text=validate_alt_text(alt_text),
            reply_to_id=self._reply_target(reply_to_id),
            reply_control=validate_reply_control(reply_control),
            topic_tag=topic_tag,
        )
        return await self.publisher.publish_spec(spec)

    async def create_video_post(
        self,
        video_url: str,
        text: str = "",
        alt_text: str = "",
        reply_to_id: str | None = None,
        reply_control: ReplyControl | str | None = None,
        topic_tag: str | None = None,
    ) -> PublishResult:
        """Publish a video post; processing can take minutes, see PollSettings."""
        spec = MediaSpec(
            media_type=MediaType.VIDEO,
            media_url=validate_https_url(video_url, "media_url"),
            text=validate_text(text),
            alt_text=validate_alt_text(alt_text),
            reply_to_id=self._reply_target(reply_to_id),
            reply_control=validate_reply_control(reply_control),
            topic_tag=topic_tag,
        )
        return await self.publisher.publish_spec(spec)

    async def create_carousel_post(
        self,
        media_urls: Sequence[str],
        text: str = "",
        alt_texts: Sequence[str] | None = None,
        reply_to_id: str | None = None,
        reply_control: ReplyControl | str | None = None,
        topic_tag: str | None = None,
    ) -> PublishResult:
        return await self.publisher.publish_carousel(
            list(media_urls),
            text=text,
            alt_texts=list(alt_texts) if alt_texts else None,
            reply_control=reply_control,
            reply_to_id=self._reply_target(reply_to_id),
            topic_tag=topic_tag,
        )

    @staticmethod
    def _reply_target(reply_to_id: str | None) -> str | None:
        if reply_to_id is None:
            return None
        return normalize_id(reply_to_id, "post", field="reply_to_id")
