"""Global constants package for Threads Automator.

PACKAGE STRUCTURE:
-----------------
- limits.py   : API limits, content constraints, retry/poll defaults
- status.py   : Status enums (container status, error kinds, media types)

USAGE EXAMPLES:
--------------
    from threads_automator.constants import ContainerStatus, THREADS_TEXT_MAX_LENGTH
"""

from .limits import (
    THREADS_TEXT_MAX_LENGTH,
    THREADS_ALT_TEXT_MAX_LENGTH,
    THREADS_CAROUSEL_MIN_ITEMS,
    THREADS_CAROUSEL_MAX_ITEMS,
    THREADS_POLL_MIN_OPTIONS,
    THREADS_POLL_MAX_OPTIONS,
    THREADS_PAGE_LIMIT_DEFAULT,
    THREADS_PAGE_LIMIT_MAX,
    THREADS_VIDEO_EXTENSIONS,
    SHORT_LIVED_TOKEN_SECONDS,
    LONG_LIVED_TOKEN_SECONDS,
    TOKEN_ROTATION_DAYS,
    RETRY_MAX_RETRIES,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
    RETRY_BACKOFF_FACTOR,
    POLL_INTERVAL_SECONDS,
    POLL_MAX_ATTEMPTS,
    REQUEST_TIMEOUT_SECONDS,
    OAUTH_TIMEOUT_SECONDS,
    AUTH_ERROR_CODES,
    RATE_LIMIT_ERROR_CODES,
)
from .status import (
    ContainerStatus,
    TERMINAL_CONTAINER_STATUSES,
    ErrorKind,
    MediaType,
    ReplyControl,
)

__all__ = [
    "THREADS_TEXT_MAX_LENGTH",
    "THREADS_ALT_TEXT_MAX_LENGTH",
    "THREADS_CAROUSEL_MIN_ITEMS",
    "THREADS_CAROUSEL_MAX_ITEMS",
    "THREADS_POLL_MIN_OPTIONS",
    "THREADS_POLL_MAX_OPTIONS",
    "THREADS_PAGE_LIMIT_DEFAULT",
    "THREADS_PAGE_LIMIT_MAX",
    "THREADS_VIDEO_EXTENSIONS",
    "SHORT_LIVED_TOKEN_SECONDS",
    "LONG_LIVED_TOKEN_SECONDS",
    "TOKEN_ROTATION_DAYS",
    "RETRY_MAX_RETRIES",
    "RETRY_INITIAL_DELAY_SECONDS",
    "RETRY_MAX_DELAY_SECONDS",
    "RETRY_BACKOFF_FACTOR",
    "POLL_INTERVAL_SECONDS",
    "POLL_MAX_ATTEMPTS",
    "REQUEST_TIMEOUT_SECONDS",
    "OAUTH_TIMEOUT_SECONDS",
    "AUTH_ERROR_CODES",
    "RATE_LIMIT_ERROR_CODES",
    "ContainerStatus",
    "TERMINAL_CONTAINER_STATUSES",
    "ErrorKind",
    "MediaType",
    "ReplyControl",
]
