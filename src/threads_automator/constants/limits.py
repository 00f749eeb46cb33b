"""Limit constants for the Threads API.

MODIFICATION GUIDE:
------------------
- THREADS_* limits: Based on Threads Graph API documentation
- RETRY_* / POLL_* settings: Defaults only, callers may override per client
"""

from typing import Final

# =============================================================================
# THREADS CONTENT LIMITS
# =============================================================================

THREADS_TEXT_MAX_LENGTH: Final[int] = 500
"""Maximum post text length in characters."""

THREADS_ALT_TEXT_MAX_LENGTH: Final[int] = 1000
"""Maximum alt text length for a media item."""

THREADS_CAROUSEL_MIN_ITEMS: Final[int] = 2
"""Minimum children in a carousel post."""

THREADS_CAROUSEL_MAX_ITEMS: Final[int] = 20
"""Maximum children in a carousel post."""

THREADS_POLL_MIN_OPTIONS: Final[int] = 2
THREADS_POLL_MAX_OPTIONS: Final[int] = 4

THREADS_PAGE_LIMIT_DEFAULT: Final[int] = 25
THREADS_PAGE_LIMIT_MAX: Final[int] = 100

THREADS_VIDEO_EXTENSIONS: Final[tuple[str, ...]] = (".mp4", ".mov", ".m4v", ".webm")
"""File extensions treated as video when detecting media type from a URL."""


# =============================================================================
# TOKEN LIFETIME
# =============================================================================

SHORT_LIVED_TOKEN_SECONDS: Final[int] = 3600
"""Fallback lifetime when the exchange response omits expires_in."""

LONG_LIVED_TOKEN_SECONDS: Final[int] = 60 * 24 * 3600
"""Long-lived tokens are valid for 60 days."""

TOKEN_ROTATION_DAYS: Final[int] = 55
"""Warn about rotation this many days after a token was stored."""


# =============================================================================
# RETRY / POLLING DEFAULTS
# =============================================================================

RETRY_MAX_RETRIES: Final[int] = 3
RETRY_INITIAL_DELAY_SECONDS: Final[float] = 1.0
RETRY_MAX_DELAY_SECONDS: Final[float] = 30.0
RETRY_BACKOFF_FACTOR: Final[float] = 2.0

POLL_INTERVAL_SECONDS: Final[float] = 2.0
"""Time between container status checks."""

POLL_MAX_ATTEMPTS: Final[int] = 150
"""Status checks before giving up (~5 minutes at the default interval)."""

REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0
OAUTH_TIMEOUT_SECONDS: Final[float] = 300.0


# =============================================================================
# ERROR CODES
# =============================================================================

AUTH_ERROR_CODES: Final[frozenset[int]] = frozenset({102, 190})
"""Graph error codes meaning the token is invalid, expired or revoked."""

RATE_LIMIT_ERROR_CODES: Final[frozenset[int]] = frozenset({4, 17, 32, 613})
"""Graph error codes meaning a request/usage limit was hit."""
