"""Tests for the ThreadsClient facade."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import pytest

from threads_automator.threads.client import ThreadsClient
from threads_automator.threads.config import Credentials, PollSettings, ThreadsSettings
from threads_automator.threads.errors import ValidationError
from threads_automator.threads.oauth_server import OAuthResult
from threads_automator.threads.store import MemoryCredentialStore


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings() -> ThreadsSettings:
    return ThreadsSettings(
        client_id="123456",
        client_secret="app-secret",
        access_token="injected-token",
        user_id="u1",
        poll=PollSettings(interval=0.1, max_attempts=5),
    )


@pytest.fixture
def client(settings, http_client, sleep_mock) -> ThreadsClient:
    return ThreadsClient(settings, http_client=http_client, sleep=sleep_mock)


def _form(request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:
    """Settings, credentials and token injection."""

    def test_injected_token_used(self, client):
        assert client.tokens.current_token() == "injected-token"
        assert client.tokens.user_id == "u1"
        assert client.transport.token_provider() == "injected-token"

    def test_accepts_bare_credentials(self, credentials):
        client = ThreadsClient(credentials)

        assert client.settings.client_id == "123456"
        assert client.credentials == credentials
        assert client.tokens.current_token() == ""

    def test_versioned_base_url(self, client):
        assert client.transport.api_version == "v1.0"
        assert client.transport.base_url == "https://graph.threads.net"

    @pytest.mark.asyncio
    async def test_async_context_manager(self, settings, http_client):
        async with ThreadsClient(settings, http_client=http_client) as client:
            assert client.transport.client is http_client

        assert not http_client.is_closed

    def test_oauth_server_requires_credentials(self):
        client = ThreadsClient(ThreadsSettings(client_id="", client_secret=""))

        with pytest.raises(ValidationError) as exc_info:
            client.oauth_server()

        assert exc_info.value.field == "client_id"
        assert "client_secret" in exc_info.value.message


# =============================================================================
# Reads
# =============================================================================

class TestReads:
    """Thin GET/DELETE wrappers."""

    @pytest.mark.asyncio
    async def test_get_me(self, client, graph_api):
        graph_api.route("GET", "/v1.0/me", (200, {
            "id": "u1",
            "username": "alice",
            "threads_biography": "hello",
        }))

        user = await client.get_me()

        assert user.username == "alice"
        assert user.biography == "hello"
        assert "username" in graph_api.requests[0].url.params["fields"]

    @pytest.mark.asyncio
    async def test_get_post_from_permalink(self, client, graph_api):
        graph_api.route("GET", "/v1.0/ABC123", (200, {"id": "ABC123", "text": "hi", "is_reply": False}))

        post = await client.get_post("https://www.threads.net/@alice/post/ABC123")

        assert post.id == "ABC123"
        assert post.text == "hi"

    @pytest.mark.asyncio
    async def test_get_post_rejects_user_reference(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.get_post("user:42")

        assert exc_info.value.field == "post_id"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("call, field", [
        (lambda c: c.get_post(" "), "post_id"),
        (lambda c: c.get_user(""), "user_id"),
        (lambda c: c.delete_post("\t"), "post_id"),
        (lambda c: c.get_post_insights("  ", ["views"]), "post_id"),
        (lambda c: c.publisher.wait_until_ready(" "), "container_id"),
        (lambda c: c.publisher.publish(" "), "container_id"),
    ])
    async def test_blank_identifier_rejected_offline(self, client, graph_api, call, field):
        with pytest.raises(ValidationError) as exc_info:
            await call(client)

        assert exc_info.value.field == field
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_delete_post(self, client, graph_api):
        graph_api.route("DELETE", "/v1.0/123", (200, {"success": True}))

        assert await client.delete_post("#123") is True
        assert len(graph_api.calls("DELETE", "/v1.0/123")) == 1

    @pytest.mark.asyncio
    async def test_iter_user_posts_defaults_to_me(self, client, graph_api):
        graph_api.route("GET", "/v1.0/u1/threads", (200, {"data": [{"id": "1"}, {"id": "2"}]}))

        posts = await client.iter_user_posts(limit=10).collect_all()

        assert [p.id for p in posts] == ["1", "2"]
        assert graph_api.requests[0].url.params["limit"] == "10"

    @pytest.mark.asyncio
    async def test_iter_replies(self, client, graph_api):
        graph_api.route("GET", "/v1.0/p1/replies", (200, {"data": [{"id": "r1", "is_reply": True}]}))

        replies = await client.iter_replies("post:p1").collect_all()

        assert replies[0].is_reply

    def test_keyword_search_validation(self, client):
        with pytest.raises(ValidationError) as exc_info:
            client.keyword_search("  ")
        assert exc_info.value.field == "query"

        with pytest.raises(ValidationError) as exc_info:
            client.keyword_search("python", search_type="OLDEST")
        assert exc_info.value.field == "search_type"

    @pytest.mark.asyncio
    async def test_keyword_search_params(self, client, graph_api):
        graph_api.route("GET", "/v1.0/keyword_search", (200, {"data": []}))

        await client.keyword_search("python", search_type="recent").next()

        params = graph_api.requests[0].url.params
        assert params["q"] == "python"
        assert params["search_type"] == "RECENT"

    @pytest.mark.asyncio
    async def test_publishing_limit(self, client, graph_api):
        graph_api.route("GET", "/v1.0/u1/threads_publishing_limit", (200, {
            "data": [{"quota_usage": 3, "config": {"quota_total": 250, "quota_duration": 86400}}],
        }))

        limit = await client.get_publishing_limit()

        assert limit.quota_usage == 3
        assert limit.remaining == 247


# =============================================================================
# Insights
# =============================================================================

class TestInsights:
    """Metric and date validation happens before any request."""

    @pytest.mark.asyncio
    async def test_post_insights(self, client, graph_api):
        graph_api.route("GET", "/v1.0/p1/insights", (200, {"data": [
            {"name": "views", "period": "lifetime", "values": [{"value": 120}]},
            {"name": "likes", "period": "lifetime", "values": [{"value": 7}]},
        ]}))

        insights = await client.get_post_insights("p1", ["views", "likes"])

        assert {i.name: i.value for i in insights} == {"views": 120, "likes": 7}
        assert graph_api.requests[0].url.params["metric"] == "views,likes"

    @pytest.mark.asyncio
    async def test_unknown_metric(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.get_post_insights("p1", ["impressions"])

        assert exc_info.value.field == "metrics"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_breakdown_requires_demographics(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.get_account_insights(["views"], breakdown="age")

        assert exc_info.value.field == "breakdown"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_future_since(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.get_account_insights(since=datetime.now(timezone.utc) + timedelta(days=1))

        assert exc_info.value.field == "since"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_account_insights_window(self, client, graph_api):
        graph_api.route("GET", "/v1.0/u1/threads_insights", (200, {"data": [
            {"name": "followers_count", "period": "day", "total_value": {"value": 1500}},
        ]}))
        since = datetime(2025, 1, 1, tzinfo=timezone.utc)
        until = datetime(2025, 1, 31, tzinfo=timezone.utc)

        insights = await client.get_account_insights(["followers_count"], since=since, until=until)

        params = graph_api.requests[0].url.params
        assert params["since"] == str(int(since.timestamp()))
        assert params["until"] == str(int(until.timestamp()))
        assert insights[0].value == 1500


# =============================================================================
# Publishing
# =============================================================================

class TestPublishing:
    """create -> wait -> publish -> permalink through the facade."""

    @pytest.mark.asyncio
    async def test_create_text_post(self, client, graph_api, sleep_mock):
        graph_api.route("POST", "/v1.0/u1/threads", (200, {"id": "c1"}))
        graph_api.route("GET", "/v1.0/c1", (200, {"status": "IN_PROGRESS"}), (200, {"status": "FINISHED"}))
        graph_api.route("POST", "/v1.0/u1/threads_publish", (200, {"id": "p1"}))
        graph_api.route("GET", "/v1.0/p1", (200, {"permalink": "https://www.threads.net/@alice/post/p1"}))

        result = await client.create_text_post("Hello", reply_control="mentioned_only")

        assert result.post_id == "p1"
        assert result.permalink == "https://www.threads.net/@alice/post/p1"
        assert result.container_ids == ["c1"]
        assert _form(graph_api.calls("POST", "/v1.0/u1/threads")[0]) == {
            "media_type": "TEXT",
            "text": "Hello",
            "reply_control": "mentioned_only",
        }
        assert _form(graph_api.calls("POST", "/v1.0/u1/threads_publish")[0]) == {"creation_id": "c1"}
        sleep_mock.assert_awaited_once_with(0.1)

    @pytest.mark.asyncio
    async def test_reply_target_normalized(self, client, graph_api):
        graph_api.route("POST", "/v1.0/u1/threads", (200, {"id": "c1"}))
        graph_api.route("GET", "/v1.0/c1", (200, {"status": "FINISHED"}))
        graph_api.route("POST", "/v1.0/u1/threads_publish", (200, {"id": "p2"}))
        graph_api.route("GET", "/v1.0/p2", (200, {}))

        await client.create_text_post("reply", reply_to_id="https://www.threads.net/t/XYZ")

        assert _form(graph_api.calls("POST", "/v1.0/u1/threads")[0])["reply_to_id"] == "XYZ"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs, field", [
        ({"text": ""}, "text"),
        ({"text": "x" * 501}, "text"),
        ({"text": "poll", "poll_options": ["only one"]}, "poll_options"),
        ({"text": "hi", "reply_control": "friends"}, "reply_control"),
        ({"text": "hi", "reply_to_id": "user:1"}, "reply_to_id"),
    ])
    async def test_text_post_validation(self, client, graph_api, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            await client.create_text_post(**kwargs)

        assert exc_info.value.field == field
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_image_post_requires_https(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.create_image_post("http://example.com/a.jpg")

        assert exc_info.value.field == "media_url"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_video_post_alt_text_limit(self, client, graph_api):
        with pytest.raises(ValidationError) as exc_info:
            await client.create_video_post("https://example.com/a.mp4", alt_text="a" * 1001)

        assert exc_info.value.field == "alt_text"
        assert graph_api.requests == []

    @pytest.mark.asyncio
    async def test_carousel_needs_two_items(self, client, graph_api):
        with pytest.raises(ValidationError):
            await client.create_carousel_post(["https://example.com/a.jpg"])

        assert graph_api.requests == []


# =============================================================================
# Authentication helpers
# =============================================================================

class TestAuthentication:
    """login / save / load."""

    def test_save_and_load_token(self, settings, http_client):
        store = MemoryCredentialStore()
        ThreadsClient(settings, http_client=http_client, store=store).save_token("Main", username="alice")

        fresh = ThreadsClient(Credentials(client_id="123456", client_secret="s"), store=store)
        state = fresh.load_token("main")

        assert state.access_token == "injected-token"
        assert fresh.tokens.user_id == "u1"
        assert store.get("main").username == "alice"

    def test_load_unknown_account(self, client):
        assert client.load_token("ghost") is None

    @pytest.mark.asyncio
    async def test_login_persists_when_named(self, client):
        result = OAuthResult(access_token="injected-token", user_id="u1", username="alice", expires_at=None)
        server = MagicMock()
        server.run = AsyncMock(return_value=result)

        with patch.object(ThreadsClient, "oauth_server", return_value=server):
            assert await client.login(timeout=10, open_browser=False, account_name="alice") is result

        server.run.assert_awaited_once_with(timeout=10, open_browser=False)
        assert client.store.get("alice").username == "alice"

    @pytest.mark.asyncio
    async def test_refresh_token(self, client, graph_api):
        graph_api.route("GET", "/refresh_access_token", (200, {"access_token": "fresh", "expires_in": 5184000}))

        state = await client.refresh_token()

        assert state.access_token == "fresh"
        assert client.transport.token_provider() == "fresh"
