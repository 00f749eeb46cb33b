"""Data models for Threads publishing and reads."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from ..constants import ContainerStatus, MediaType, ReplyControl

T = TypeVar("T")


@dataclass(frozen=True)
class Container:
    """Server-side media container as observed by one status read.

    Each poll produces a new Container; status is replaced wholesale, never
    merged with a previous observation.
    """
    id: str
    status: ContainerStatus = ContainerStatus.IN_PROGRESS
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_ready(self) -> bool:
        return self.status is ContainerStatus.FINISHED

    @classmethod
    def from_api(cls, container_id: str, data: dict[str, Any]) -> "Container":
        return cls(
            id=data.get("id") or container_id,
            status=ContainerStatus.parse(data.get("status")),
            error_message=data.get("error_message"),
        )


@dataclass(frozen=True)
class MediaSpec:
    """Payload for a single media container.

    Text-only containers leave ``media_url`` empty; image/video containers
    require an HTTPS URL the Threads servers can fetch.
    """
    media_type: MediaType
    media_url: str = ""
    text: str = ""
    alt_text: str = ""
    is_carousel_item: bool = False
    children: tuple[str, ...] = ()
    reply_to_id: str | None = None
    reply_control: ReplyControl | None = None
    topic_tag: str | None = None
    location_id: str | None = None
    poll_options: tuple[str, ...] = ()

    def to_params(self) -> dict[str, str]:
        """Build the form parameters for the container-creation call."""
        params: dict[str, str] = {"media_type": self.media_type.value}
        if self.media_type is MediaType.IMAGE:
            params["image_url"] = self.media_url
        elif self.media_type is MediaType.VIDEO:
            params["video_url"] = self.media_url
        if self.text:
            params["text"] = self.text
        if self.alt_text:
            params["alt_text"] = self.alt_text
        if self.is_carousel_item:
            params["is_carousel_item"] = "true"
        if self.children:
            params["children"] = ",".join(self.children)
        if self.reply_to_id:
            params["reply_to_id"] = self.reply_to_id
        if self.reply_control:
            params["reply_control"] = self.reply_control.value
        if self.topic_tag:
            params["topic_tag"] = self.topic_tag
        if self.location_id:
            params["location_id"] = self.location_id
        if self.poll_options:
            keys = ("option_a", "option_b", "option_c", "option_d")
            params["poll_attachment"] = _poll_json(dict(zip(keys, self.poll_options)))
        return params


def _poll_json(options: dict[str, str]) -> str:
    return json.dumps(options, separators=(",", ":"))


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a cursor-paginated result set."""
    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_cursor)


@dataclass
class Post:
    """A published Threads post."""
    id: str
    text: str | None = None
    media_type: str | None = None
    permalink: str | None = None
    username: str | None = None
    timestamp: datetime | None = None
    shortcode: str | None = None
    is_reply: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Post":
        return cls(
            id=str(data.get("id", "")),
            text=data.get("text"),
            media_type=data.get("media_type"),
            permalink=data.get("permalink"),
            username=data.get("username"),
            timestamp=parse_timestamp(data.get("timestamp")),
            shortcode=data.get("shortcode"),
            is_reply=bool(data.get("is_reply", False)),
            raw=data,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "text": self.text,
            "media_type": self.media_type,
            "permalink": self.permalink,
            "username": self.username,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class PublishResult:
    """Outcome of a create -> wait -> publish run."""
    post: Post
    container_ids: list[str] = field(default_factory=list)
    published_at: datetime | None = None

    @property
    def post_id(self) -> str:
        return self.post.id

    @property
    def permalink(self) -> str | None:
        return self.post.permalink


@dataclass
class User:
    """A Threads user profile."""
    id: str
    username: str | None = None
    name: str | None = None
    biography: str | None = None
    profile_picture_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=str(data.get("id", "")),
            username=data.get("username"),
            name=data.get("name"),
            biography=data.get("threads_biography"),
            profile_picture_url=data.get("threads_profile_picture_url"),
        )


@dataclass
class PublishingLimit:
    """Current publishing quota usage for the account."""
    quota_usage: int = 0
    quota_total: int = 0
    reply_quota_usage: int = 0
    reply_quota_total: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PublishingLimit":
        config = data.get("config") or {}
        reply_config = data.get("reply_config") or {}
        return cls(
            quota_usage=int(data.get("quota_usage", 0)),
            quota_total=int(config.get("quota_total", 0)),
            reply_quota_usage=int(data.get("reply_quota_usage", 0)),
            reply_quota_total=int(reply_config.get("quota_total", 0)),
        )

    @property
    def remaining(self) -> int:
        return max(self.quota_total - self.quota_usage, 0)


@dataclass
class Insight:
    """A single insight metric."""
    name: str
    period: str | None = None
    value: int = 0
    values: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Insight":
        values = data.get("values") or []
        if values:
            value = values[0].get("value", 0)
        else:
            value = (data.get("total_value") or {}).get("value", 0)
        return cls(
            name=data.get("name", ""),
            period=data.get("period"),
            value=value if isinstance(value, int) else 0,
            values=values,
        )


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse Graph API timestamps like 2024-01-31T12:00:00+0000."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
