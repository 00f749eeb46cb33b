"""Tests for cursor pagination."""

from __future__ import annotations

import pytest

from threads_automator.threads.errors import APIError, ValidationError
from threads_automator.threads.models import Post
from threads_automator.threads.pagination import PageIterator, decode_page, paging_after

PATH = "/v1.0/u1/threads"


def _page(ids, after=None):
    body = {"data": [{"id": i} for i in ids]}
    if after:
        body["paging"] = {"cursors": {"before": "b", "after": after}}
    return (200, body)


class TestDecodePage:
    """Two-shape list decoding."""

    def test_object_with_data(self):
        page = decode_page({"data": [{"id": "1"}], "paging": {"cursors": {"after": "c1"}}}, Post.from_api)
        assert [p.id for p in page.items] == ["1"]
        assert page.next_cursor == "c1"
        assert page.has_more

    def test_bare_list_has_no_cursor(self):
        page = decode_page([{"id": "1"}, {"id": "2"}], Post.from_api)
        assert len(page.items) == 2
        assert page.next_cursor is None

    def test_object_shape_takes_precedence(self):
        page = decode_page({"data": [], "paging": {"after": "c9"}}, lambda item: item)
        assert page.items == []
        assert page.next_cursor == "c9"

    def test_unknown_shape(self):
        with pytest.raises(APIError, match="Unexpected list response shape"):
            decode_page({"items": []}, lambda item: item)

    def test_paging_after_fallbacks(self):
        assert paging_after({"paging": {"cursors": {"after": "a"}, "after": "b"}}) == "a"
        assert paging_after({"paging": {"after": "b"}}) == "b"
        assert paging_after({"paging": {"cursors": {"before": "x"}}}) is None
        assert paging_after({}) is None


class TestPageIterator:
    """has_next / next / auto mode."""

    @pytest.mark.asyncio
    async def test_walks_pages_until_no_cursor(self, transport, graph_api):
        graph_api.queue(_page(["1", "2"], after="c1"), _page(["3"], after="c2"), _page(["4"]))
        pages = PageIterator(transport, "u1/threads", parse_item=Post.from_api, limit=2)

        assert pages.has_next()
        first = await pages.next()
        assert [p.id for p in first.items] == ["1", "2"]
        assert pages.has_next()
        await pages.next()
        last = await pages.next()
        assert [p.id for p in last.items] == ["4"]
        assert not pages.has_next()

        cursors = [r.url.params.get("after") for r in graph_api.calls("GET", PATH)]
        assert cursors == [None, "c1", "c2"]
        assert all(r.url.params["limit"] == "2" for r in graph_api.requests)

    @pytest.mark.asyncio
    async def test_next_after_exhaustion_fails(self, transport, graph_api):
        graph_api.queue(_page(["1"]))
        pages = PageIterator(transport, "u1/threads")
        await pages.next()

        with pytest.raises(StopAsyncIteration):
            await pages.next()
        with pytest.raises(StopAsyncIteration):
            await pages.next()
        assert len(graph_api.requests) == 1

    @pytest.mark.asyncio
    async def test_collect_all(self, transport, graph_api):
        graph_api.queue(_page(["1", "2"], after="c1"), _page(["3"]))

        items = await PageIterator(transport, "u1/threads", parse_item=Post.from_api).collect_all()

        assert [p.id for p in items] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_collect_all_max_items(self, transport, graph_api):
        graph_api.queue(_page(["1", "2"], after="c1"), _page(["3", "4"], after="c2"))

        items = await PageIterator(transport, "u1/threads").collect_all(max_items=3)

        assert [i["id"] for i in items] == ["1", "2", "3"]
        assert len(graph_api.requests) == 2

    @pytest.mark.asyncio
    async def test_async_for_yields_items(self, transport, graph_api):
        graph_api.queue(_page(["1"], after="c1"), _page(["2"]))

        ids = [post.id async for post in PageIterator(transport, "u1/threads", parse_item=Post.from_api)]

        assert ids == ["1", "2"]

    @pytest.mark.asyncio
    async def test_repeated_cursor_ends_iteration(self, transport, graph_api):
        graph_api.queue(_page(["1"], after="same"), _page(["2"], after="same"))
        pages = PageIterator(transport, "u1/threads")

        await pages.collect_all()

        assert not pages.has_next()
        assert len(graph_api.requests) == 2

    @pytest.mark.asyncio
    async def test_start_cursor_and_extra_params(self, transport, graph_api):
        graph_api.queue(_page(["9"]))

        await PageIterator(transport, "u1/threads", params={"fields": "id"}, cursor="resume").next()

        params = graph_api.requests[0].url.params
        assert params["after"] == "resume"
        assert params["fields"] == "id"

    @pytest.mark.asyncio
    async def test_error_propagates_and_keeps_cursor(self, transport, graph_api):
        graph_api.queue(_page(["1"], after="c1"), (400, {"error": {"message": "bad cursor"}}))
        pages = PageIterator(transport, "u1/threads")
        await pages.next()

        with pytest.raises(APIError):
            await pages.next()

        assert pages.cursor == "c1"
        assert pages.has_next()

    def test_limit_validated(self, transport):
        with pytest.raises(ValidationError):
            PageIterator(transport, "u1/threads", limit=500)
