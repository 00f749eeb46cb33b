"""Pure validation functions for request arguments.

Pure functions - no I/O, no side effects. Each one either returns the
(normalized) value or raises ValidationError naming the offending field, so
bad input short-circuits before anything is sent over the network.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

from ..constants import (
    THREADS_ALT_TEXT_MAX_LENGTH,
    THREADS_CAROUSEL_MAX_ITEMS,
    THREADS_CAROUSEL_MIN_ITEMS,
    THREADS_PAGE_LIMIT_MAX,
    THREADS_POLL_MAX_OPTIONS,
    THREADS_POLL_MIN_OPTIONS,
    THREADS_TEXT_MAX_LENGTH,
    THREADS_VIDEO_EXTENSIONS,
    MediaType,
    ReplyControl,
)
from .errors import ValidationError

POST_INSIGHT_METRICS = frozenset({
    "views", "likes", "replies", "reposts", "quotes", "shares",
})

ACCOUNT_INSIGHT_METRICS = frozenset({
    "views", "likes", "replies", "reposts", "quotes", "clicks",
    "followers_count", "follower_demographics",
})

BREAKDOWNS = frozenset({"country", "city", "age", "gender"})

_ID_PREFIXES = {
    "post": "post", "posts": "post", "p": "post",
    "reply": "reply", "replies": "reply", "r": "reply",
    "user": "user", "users": "user", "u": "user",
    "location": "location", "loc": "location", "l": "location",
}


def validate_id(value: str | None, field: str) -> str:
    """Require a non-blank identifier.

    Args:
        value: Raw identifier.
        field: Field name reported on failure (e.g. "post_id").

    Returns:
        The stripped identifier.
    """
    if value is None or not str(value).strip():
        raise ValidationError(field, f"{field} is required")
    return str(value).strip()


def normalize_id(value: str | None, kind: str, field: str | None = None) -> str:
    """Accept the shorthands people paste: ``#123``, ``post:123``, permalinks.

    Args:
        value: Raw input.
        kind: Expected resource kind ("post", "reply", "user", "location").
        field: Field name for errors, defaults to ``<kind>_id``.

    Returns:
        The bare identifier.
    """
    field = field or f"{kind}_id"
    s = validate_id(value, field).removeprefix("#")

    if "://" in s:
        extracted, url_kind = _id_from_url(s)
        if extracted is None:
            raise ValidationError(field, f"could not extract a {kind} ID from URL")
        if url_kind and url_kind != kind:
            raise ValidationError(field, f"URL is for a {url_kind}, expected {kind}")
        return extracted

    prefix, sep, rest = s.partition(":")
    if sep:
        normalized = _ID_PREFIXES.get(prefix.strip().lower())
        if normalized is not None:
            rest = rest.strip()
            if not rest:
                raise ValidationError(field, f"missing value after '{prefix}:'")
            if normalized != kind:
                raise ValidationError(field, f"expected a {kind} ID, got {normalized}:{rest}")
            s = rest

    return validate_id(s, field)


def _id_from_url(raw: str) -> tuple[str | None, str | None]:
    parsed = urlparse(raw.strip())
    if not parsed.scheme or not parsed.netloc:
        return None, None

    query = parse_qs(parsed.query)
    for key, kind in (("post_id", "post"), ("reply_id", "reply"), ("id", None)):
        values = query.get(key)
        if values and values[0].strip():
            return values[0].strip(), kind

    segments = [s for s in parsed.path.split("/") if s]
    for i, seg in enumerate(segments[:-1]):
        if seg in ("t", "post", "p"):
            return segments[i + 1], "post"
    return None, None


def validate_https_url(url: str | None, field: str) -> str:
    """Require an https:// URL (the Threads servers refuse plain http)."""
    url = validate_id(url, field)
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ValidationError(field, f"{field} must be an https:// URL")
    return url


def detect_media_type(url: str) -> MediaType:
    """Guess IMAGE or VIDEO from the URL's file extension."""
    path = urlparse(url).path.lower()
    if path.endswith(THREADS_VIDEO_EXTENSIONS):
        return MediaType.VIDEO
    return MediaType.IMAGE


def validate_media_type(value: str | MediaType, field: str = "media_type") -> MediaType:
    if isinstance(value, MediaType):
        return value
    try:
        return MediaType(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in MediaType)
        raise ValidationError(field, f"invalid {field} {value!r}; expected one of {allowed}") from None


def validate_text(text: str | None, field: str = "text", required: bool = False) -> str:
    text = text or ""
    if required and not text.strip():
        raise ValidationError(field, f"{field} is required")
    if len(text) > THREADS_TEXT_MAX_LENGTH:
        raise ValidationError(
            field, f"{field} is {len(text)} characters; maximum is {THREADS_TEXT_MAX_LENGTH}"
        )
    return text


def validate_alt_text(alt_text: str | None, field: str = "alt_text") -> str:
    alt_text = alt_text or ""
    if len(alt_text) > THREADS_ALT_TEXT_MAX_LENGTH:
        raise ValidationError(
            field, f"{field} is {len(alt_text)} characters; maximum is {THREADS_ALT_TEXT_MAX_LENGTH}"
        )
    return alt_text


def validate_limit(limit: int, field: str = "limit") -> int:
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise ValidationError(field, f"{field} must be an integer")
    if limit < 1 or limit > THREADS_PAGE_LIMIT_MAX:
        raise ValidationError(field, f"{field} must be between 1 and {THREADS_PAGE_LIMIT_MAX}")
    return limit


def validate_date_range(
    since: datetime | None,
    until: datetime | None,
    now: datetime | None = None,
) -> tuple[datetime | None, datetime | None]:
    """Check an insights window: since <= until and neither in the future."""
    now = now or datetime.now(timezone.utc)
    since, until = _aware(since), _aware(until)
    if since is not None and since > now:
        raise ValidationError("since", "since cannot be in the future")
    if until is not None and until > now:
        raise ValidationError("until", "until cannot be in the future")
    if since is not None and until is not None and since > until:
        raise ValidationError("since", "since must not be after until")
    return since, until


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_metrics(metrics: Iterable[str], allowed: frozenset[str], field: str = "metrics") -> list[str]:
    cleaned = [m.strip().lower() for m in metrics if m and m.strip()]
    if not cleaned:
        raise ValidationError(field, "at least one metric is required")
    unknown = sorted(set(cleaned) - allowed)
    if unknown:
        raise ValidationError(
            field, f"unknown metrics: {', '.join(unknown)}; valid: {', '.join(sorted(allowed))}"
        )
    return cleaned


def validate_breakdown(breakdown: str | None, field: str = "breakdown") -> str | None:
    if not breakdown:
        return None
    if breakdown not in BREAKDOWNS:
        raise ValidationError(field, f"invalid breakdown {breakdown!r}; valid: {', '.join(sorted(BREAKDOWNS))}")
    return breakdown


def validate_reply_control(value: str | ReplyControl | None, field: str = "reply_control") -> ReplyControl | None:
    if value is None or value == "":
        return None
    if isinstance(value, ReplyControl):
        return value
    try:
        return ReplyControl(value)
    except ValueError:
        allowed = ", ".join(r.value for r in ReplyControl)
        raise ValidationError(field, f"invalid {field} {value!r}; valid: {allowed}") from None


def validate_poll_options(options: Sequence[str], field: str = "poll_options") -> tuple[str, ...]:
    cleaned = tuple(o.strip() for o in options if o and o.strip())
    if len(cleaned) < THREADS_POLL_MIN_OPTIONS:
        raise ValidationError(field, f"a poll needs at least {THREADS_POLL_MIN_OPTIONS} options")
    if len(cleaned) > THREADS_POLL_MAX_OPTIONS:
        raise ValidationError(field, f"a poll supports at most {THREADS_POLL_MAX_OPTIONS} options")
    return cleaned


def validate_carousel_items(items: Sequence[str], field: str = "items") -> list[str]:
    if len(items) < THREADS_CAROUSEL_MIN_ITEMS:
        raise ValidationError(field, f"a carousel needs at least {THREADS_CAROUSEL_MIN_ITEMS} items")
    if len(items) > THREADS_CAROUSEL_MAX_ITEMS:
        raise ValidationError(field, f"a carousel supports at most {THREADS_CAROUSEL_MAX_ITEMS} items")
    return [validate_https_url(url, f"{field}[{i}]") for i, url in enumerate(items)]
