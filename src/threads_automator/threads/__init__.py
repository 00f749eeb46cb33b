"""Threads publishing API client for Threads Automator."""

from .client import ThreadsClient
from .config import (
    Credentials,
    PollSettings,
    RetryPolicy,
    ThreadsSettings,
    load_threads_config,
)
from .errors import (
    APIError,
    AuthenticationError,
    ContainerFailedError,
    CSRFError,
    ErrorRecord,
    NetworkError,
    OAuthError,
    RateLimitError,
    ThreadsError,
    ThreadsTimeoutError,
    ValidationError,
)
from .models import (
    Container,
    Insight,
    MediaSpec,
    Page,
    Post,
    PublishingLimit,
    PublishResult,
    User,
)
from .oauth_server import OAuthCallbackServer, OAuthResult
from .pagination import PageIterator
from .publisher import ContainerPublisher
from .store import CredentialStore, MemoryCredentialStore, StoredCredentials
from .token_manager import TokenManager, TokenState
from .transport import HTTPTransport, RequestSpec

__all__ = [
    "ThreadsClient",
    "Credentials",
    "PollSettings",
    "RetryPolicy",
    "ThreadsSettings",
    "load_threads_config",
    "APIError",
    "AuthenticationError",
    "ContainerFailedError",
    "CSRFError",
    "ErrorRecord",
    "NetworkError",
    "OAuthError",
    "RateLimitError",
    "ThreadsError",
    "ThreadsTimeoutError",
    "ValidationError",
    "Container",
    "Insight",
    "MediaSpec",
    "Page",
    "Post",
    "PublishingLimit",
    "PublishResult",
    "User",
    "OAuthCallbackServer",
    "OAuthResult",
    "PageIterator",
    "ContainerPublisher",
    "CredentialStore",
    "MemoryCredentialStore",
    "StoredCredentials",
    "TokenManager",
    "TokenState",
    "HTTPTransport",
    "RequestSpec",
]
