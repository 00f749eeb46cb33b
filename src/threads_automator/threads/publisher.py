"""Container publishing state machine.

Publishing on Threads is a two-step protocol:
1. Create a media container (POST /{user-id}/threads)
2. Wait for it to reach FINISHED, then publish it
   (POST /{user-id}/threads_publish)

Container states:
    IN_PROGRESS -> FINISHED | ERROR | EXPIRED | PUBLISHED (all terminal)

ERROR and EXPIRED are semantic rejections from the server (bad media,
server-side processing timeout). They are surfaced as ContainerFailedError
and never retried here; running out of poll attempts is a separate,
local ThreadsTimeoutError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from ..constants import (
    THREADS_CAROUSEL_MAX_ITEMS,
    THREADS_CAROUSEL_MIN_ITEMS,
    ContainerStatus,
    MediaType,
    ReplyControl,
)
from .config import PollSettings
from .errors import (
    APIError,
    ContainerFailedError,
    ThreadsError,
    ThreadsTimeoutError,
    ValidationError,
)
from .models import Container, MediaSpec, Post, PublishResult
from .transport import HTTPTransport, RequestSpec
from .validation import (
    detect_media_type,
    validate_alt_text,
    validate_carousel_items,
    validate_https_url,
    validate_id,
    validate_media_type,
    validate_poll_options,
    validate_reply_control,
    validate_text,
)

_api_logger = logging.getLogger("threads_api")

ProgressCallback = Callable[[Container, int], Awaitable[None]]
Sleeper = Callable[[float], Awaitable[None]]


class ContainerPublisher:
    """Creates, polls and publishes Threads media containers."""

    def __init__(
        self,
        transport: HTTPTransport,
        user_id: Callable[[], str | None] | str | None = None,
        poll: PollSettings | None = None,
        sleep: Sleeper = asyncio.sleep,
        progress_callback: ProgressCallback | None = None,
    ):
        """Initialize the publisher.

        Args:
            transport: Transport used for every call
            user_id: Owning user ID, or a callable returning it (the token
                manager's user may change after login). Falls back to "me".
            poll: Default poll interval / attempt budget
            sleep: Coroutine used between polls
            progress_callback: Awaited after every non-terminal poll
        """
        self.transport = transport
        self._user_id = user_id
        self.poll = poll or PollSettings()
        self._sleep = sleep
        self.progress_callback = progress_callback

    def _user_path(self) -> str:
        user_id = self._user_id() if callable(self._user_id) else self._user_id
        return user_id or "me"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_spec(self, spec: MediaSpec) -> MediaSpec:
        """Check a MediaSpec locally; raises ValidationError before any I/O."""
        media_type = validate_media_type(spec.media_type)

        if media_type in (MediaType.IMAGE, MediaType.VIDEO):
            validate_https_url(spec.media_url, "media_url")
            validate_text(spec.text, "text")
            validate_alt_text(spec.alt_text)
        elif media_type is MediaType.TEXT:
            if spec.media_url:
                raise ValidationError("media_url", "text posts cannot carry a media_url")
            validate_text(spec.text, "text", required=not spec.poll_options)
            if spec.alt_text:
                raise ValidationError("alt_text", "alt_text only applies to image and video posts")
        else:
            if not THREADS_CAROUSEL_MIN_ITEMS <= len(spec.children) <= THREADS_CAROUSEL_MAX_ITEMS:
                raise ValidationError(
                    "children",
                    f"a carousel needs {THREADS_CAROUSEL_MIN_ITEMS}-{THREADS_CAROUSEL_MAX_ITEMS} "
                    f"child containers, got {len(spec.children)}",
                )
            for i, child in enumerate(spec.children):
                validate_id(child, f"children[{i}]")
            validate_text(spec.text, "text")

        if spec.is_carousel_item and media_type not in (MediaType.IMAGE, MediaType.VIDEO):
            raise ValidationError("is_carousel_item", "only image and video containers can be carousel items")
        if spec.poll_options:
            if media_type is not MediaType.TEXT:
                raise ValidationError("poll_options", "polls are only supported on text posts")
            validate_poll_options(spec.poll_options)
        if spec.reply_to_id is not None:
            validate_id(spec.reply_to_id, "reply_to_id")
        validate_reply_control(spec.reply_control)
        return spec

    # ------------------------------------------------------------------
    # State machine steps
    # ------------------------------------------------------------------

    async def create_container(self, spec: MediaSpec) -> str:
        """Create a media container; one network call.

        Returns:
            Container ID (creation_id)
        """
        self.validate_spec(spec)
        result = await self.transport.request(
            RequestSpec("POST", f"{self._user_path()}/threads", data=spec.to_params())
        )
        container_id = result.get("id") if isinstance(result, dict) else None
        if not container_id:
            raise APIError("Container creation returned no id", raw_body=str(result)[:500])
        _api_logger.info(f"Created {spec.media_type.value} container {container_id}")
        return str(container_id)

    async def poll_status(self, container_id: str) -> Container:
        """Single status read; does not loop."""
        container_id = validate_id(container_id, "container_id")
        data = await self.transport.request(
            RequestSpec("GET", container_id, params={"fields": "id,status,error_message"})
        )
        return Container.from_api(container_id, data if isinstance(data, dict) else {})

    async def wait_until_ready(
        self,
        container_id: str,
        max_attempts: int | None = None,
        poll_interval: float | None = None,
        raise_on_failure: bool = True,
    ) -> Container:
        """Poll until the container reaches a terminal status.

        Args:
            container_id: The container ID to wait for
            max_attempts: Poll budget (defaults to PollSettings.max_attempts)
            poll_interval: Seconds between polls (defaults to PollSettings.interval)
            raise_on_failure: Raise ContainerFailedError on ERROR/EXPIRED
                instead of returning the container

        Returns:
            The first terminal Container observed

        Raises:
            ThreadsTimeoutError: If still IN_PROGRESS after max_attempts polls
            ContainerFailedError: If the server reports ERROR or EXPIRED
        """
        container_id = validate_id(container_id, "container_id")
        max_attempts = self.poll.max_attempts if max_attempts is None else max_attempts
        poll_interval = self.poll.interval if poll_interval is None else poll_interval
        if max_attempts < 1:
            raise ValidationError("max_attempts", "max_attempts must be at least 1")
        if poll_interval < 0:
            raise ValidationError("poll_interval", "poll_interval cannot be negative")

        for attempt in range(1, max_attempts + 1):
            container = await self.poll_status(container_id)

            if container.is_terminal:
                if container.status in (ContainerStatus.ERROR, ContainerStatus.EXPIRED):
                    _api_logger.error(
                        f"Container {container_id} {container.status.value}: "
                        f"{container.error_message or 'no detail'}"
                    )
                    if raise_on_failure:
                        raise ContainerFailedError(container)
                return container

            if self.progress_callback:
                await self.progress_callback(container, attempt)
            if attempt < max_attempts:
                await self._sleep(poll_interval)

        raise ThreadsTimeoutError(
            f"Container {container_id} still IN_PROGRESS after {max_attempts} polls",
            field="container_id",
        )

    async def publish(self, container: Container | str) -> Post:
        """Publish a FINISHED container.

        Given a bare ID, the status is read once first. Publishing anything
        not FINISHED is rejected locally, without a publish call.
        """
        if not isinstance(container, Container):
            container = await self.poll_status(container)
        if not container.is_ready:
            raise ValidationError(
                "container_id",
                f"container {container.id} is {container.status.value}; only FINISHED containers can be published",
            )

        result = await self.transport.request(
            RequestSpec(
                "POST",
                f"{self._user_path()}/threads_publish",
                data={"creation_id": container.id},
            )
        )
        post_id = result.get("id") if isinstance(result, dict) else None
        if not post_id:
            raise APIError(f"Publish of container {container.id} returned no post id", raw_body=str(result)[:500])
        _api_logger.info(f"Published container {container.id} as post {post_id}")
        return Post(id=str(post_id))

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def get_permalink(self, post_id: str) -> str | None:
        """Permalink for a published post, or None if the lookup fails.

        Only used after a successful publish, so a failure here must not
        turn a published post into an error.
        """
        try:
            data = await self.transport.request(
                RequestSpec("GET", post_id, params={"fields": "permalink"})
            )
        except ThreadsError as e:
            _api_logger.warning(f"Could not fetch permalink for {post_id}: {e}")
            return None
        return data.get("permalink") if isinstance(data, dict) else None

    async def publish_spec(self, spec: MediaSpec) -> PublishResult:
        """create -> wait_until_ready -> publish -> permalink."""
        container_id = await self.create_container(spec)
        container = await self.wait_until_ready(container_id)
        post = await self.publish(container)
        post.permalink = await self.get_permalink(post.id)
        return PublishResult(
            post=post,
            container_ids=[container_id],
            published_at=datetime.now(timezone.utc),
        )

    async def publish_carousel(
        self,
        media_urls: list[str],
        text: str = "",
        alt_texts: list[str] | None = None,
        reply_control: ReplyControl | str | None = None,
        reply_to_id: str | None = None,
        topic_tag: str | None = None,
    ) -> PublishResult:
        """High-level method to publish a complete carousel post.

        This orchestrates the full publishing workflow:
        1. Create a child container for each media URL
        2. Wait for all child containers to be ready
        3. Create the carousel container
        4. Wait for the carousel container to be ready
        5. Publish and fetch the permalink

        Everything is validated before the first container is created.
        """
        media_urls = validate_carousel_items(media_urls)
        text = validate_text(text)
        control = validate_reply_control(reply_control)
        if reply_to_id is not None:
            reply_to_id = validate_id(reply_to_id, "reply_to_id")
        alt_texts = list(alt_texts or [])
        if len(alt_texts) > len(media_urls):
            raise ValidationError("alt_texts", "more alt texts than carousel items")

        children: list[MediaSpec] = []
        for i, url in enumerate(media_urls):
            alt = alt_texts[i] if i < len(alt_texts) else ""
            children.append(MediaSpec(
                media_type=detect_media_type(url),
                media_url=url,
                alt_text=validate_alt_text(alt, f"alt_texts[{i}]"),
                is_carousel_item=True,
            ))

        child_ids = []
        for child in children:
            child_ids.append(await self.create_container(child))
        for child_id in child_ids:
            await self.wait_until_ready(child_id)

        carousel_id = await self.create_container(MediaSpec(
            media_type=MediaType.CAROUSEL,
            text=text,
            children=tuple(child_ids),
            reply_to_id=reply_to_id,
            reply_control=control,
            topic_tag=topic_tag,
        ))
        carousel = await self.wait_until_ready(carousel_id)
        post = await self.publish(carousel)
        post.permalink = await self.get_permalink(post.id)
        return PublishResult(
            post=post,
            container_ids=[*child_ids, carousel_id],
            published_at=datetime.now(timezone.utc),
        )
