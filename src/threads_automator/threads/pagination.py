"""Cursor pagination over Threads list endpoints.

A PageIterator walks one list endpoint forward page by page. It is lazy,
finite and not restartable: once the server stops returning a cursor the
iterator is exhausted and a new one must be built to traverse again.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, Generic, TypeVar

from ..constants import THREADS_PAGE_LIMIT_DEFAULT
from .errors import APIError
from .models import Page
from .transport import HTTPTransport, RequestSpec
from .validation import validate_limit

_api_logger = logging.getLogger("threads_api")

T = TypeVar("T")


def paging_after(payload: Mapping[str, Any]) -> str | None:
    """Forward cursor from a list response: ``paging.cursors.after`` or ``paging.after``."""
    paging = payload.get("paging") or {}
    if not isinstance(paging, Mapping):
        return None
    cursors = paging.get("cursors") or {}
    if isinstance(cursors, Mapping) and cursors.get("after"):
        return str(cursors["after"])
    if paging.get("after"):
        return str(paging["after"])
    return None


def decode_page(payload: Any, parse_item: Callable[[dict[str, Any]], T]) -> Page[T]:
    """Decode a list response.

    Two shapes are accepted, tried in this order:
    1. ``{"data": [...], "paging": {...}}`` (the documented shape)
    2. a bare JSON array (no cursor, so always the last page)

    Raises:
        APIError: If the payload matches neither shape
    """
    if isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        items = [parse_item(item) for item in payload["data"]]
        return Page(items=items, next_cursor=paging_after(payload))
    if isinstance(payload, list):
        return Page(items=[parse_item(item) for item in payload])
    raise APIError(
        f"Unexpected list response shape: {type(payload).__name__}",
        raw_body=str(payload)[:500],
    )


class PageIterator(Generic[T]):
    """Forward-only iterator over a cursor-paginated endpoint.

    Usage:
        pages = PageIterator(transport, f"{user_id}/threads", params, Post.from_api)
        while pages.has_next():
            page = await pages.next()

        # or item by item
        async for post in PageIterator(...):
            ...

        # or everything at once
        posts = await PageIterator(...).collect_all()
    """

    def __init__(
        self,
        transport: HTTPTransport,
        path: str,
        params: Mapping[str, Any] | None = None,
        parse_item: Callable[[dict[str, Any]], T] = lambda item: item,
        limit: int = THREADS_PAGE_LIMIT_DEFAULT,
        cursor: str | None = None,
    ):
        self.transport = transport
        self.path = path
        self.params = dict(params or {})
        self.parse_item = parse_item
        self.limit = validate_limit(limit)
        self._cursor = cursor
        self._exhausted = False
        self.pages_fetched = 0

    @property
    def cursor(self) -> str | None:
        """Cursor the next call to ``next()`` will send."""
        return self._cursor

    def has_next(self) -> bool:
        """True until a page comes back without a forward cursor."""
        return not self._exhausted

    async def next(self) -> Page[T]:
        """Fetch the next page and advance the cursor.

        Raises:
            StopAsyncIteration: If the iterator is already exhausted
        """
        if self._exhausted:
            raise StopAsyncIteration(f"{self.path}: no more pages")

        params = {**self.params, "limit": self.limit}
        if self._cursor:
            params["after"] = self._cursor

        payload = await self.transport.request(RequestSpec("GET", self.path, params=params))
        page = decode_page(payload, self.parse_item)
        self.pages_fetched += 1

        # A cursor echoed back unchanged would otherwise loop forever
        if not page.next_cursor or page.next_cursor == self._cursor:
            self._cursor = None
            self._exhausted = True
        else:
            self._cursor = page.next_cursor

        _api_logger.debug(
            f"Page {self.pages_fetched} of {self.path}: {len(page.items)} items, "
            f"more={self.has_next()}"
        )
        return page

    async def pages(self) -> AsyncIterator[Page[T]]:
        while self.has_next():
            yield await self.next()

    async def __aiter__(self) -> AsyncIterator[T]:
        async for page in self.pages():
            for item in page.items:
                yield item

    async def collect_all(self, max_items: int | None = None) -> list[T]:
        """Auto mode: call ``next()`` until exhausted and concatenate the items."""
        items: list[T] = []
        while self.has_next():
            page = await self.next()
            items.extend(page.items)
            if max_items is not None and len(items) >= max_items:
                return items[:max_items]
        return items
