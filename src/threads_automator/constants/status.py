"""Status enums for the Threads publishing workflow.

Container lifecycle on the Threads API:

    IN_PROGRESS -> FINISHED -> PUBLISHED
         |
         +-----> ERROR
         +-----> EXPIRED

FINISHED, ERROR, EXPIRED and PUBLISHED are terminal for polling purposes:
once observed, no further status read is needed.
"""

from enum import Enum
from typing import Final


# =============================================================================
# CONTAINER STATUS
# =============================================================================

class ContainerStatus(str, Enum):
    """Processing status of a media container."""

    IN_PROGRESS = "IN_PROGRESS"
    """Media is still being fetched or transcoded by the server."""

    FINISHED = "FINISHED"
    """Processing done; the container can be published."""

    ERROR = "ERROR"
    """Processing failed (bad media, unreachable URL, ...)."""

    EXPIRED = "EXPIRED"
    """Container was not published within its validity window."""

    PUBLISHED = "PUBLISHED"
    """Container was already published."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_CONTAINER_STATUSES

    @classmethod
    def parse(cls, value: str | None) -> "ContainerStatus":
        """Parse a status string from the API.

        A missing or unknown value is treated as IN_PROGRESS, which is the
        implicit status of a freshly created container.
        """
        if not value:
            return cls.IN_PROGRESS
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.IN_PROGRESS


TERMINAL_CONTAINER_STATUSES: Final[frozenset[ContainerStatus]] = frozenset({
    ContainerStatus.FINISHED,
    ContainerStatus.ERROR,
    ContainerStatus.EXPIRED,
    ContainerStatus.PUBLISHED,
})


# =============================================================================
# ERROR KINDS
# =============================================================================

class ErrorKind(str, Enum):
    """Coarse classification of a failure, stable for programmatic branching."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    API = "api"
    NETWORK = "network"
    TIMEOUT = "timeout"


# =============================================================================
# MEDIA / POST ENUMS
# =============================================================================

class MediaType(str, Enum):
    """Media type of a container."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    CAROUSEL = "CAROUSEL"


class ReplyControl(str, Enum):
    """Who may reply to a post."""

    EVERYONE = "everyone"
    ACCOUNTS_YOU_FOLLOW = "accounts_you_follow"
    MENTIONED_ONLY = "mentioned_only"
