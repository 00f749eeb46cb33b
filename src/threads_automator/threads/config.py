"""Threads client configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    POLL_INTERVAL_SECONDS,
    POLL_MAX_ATTEMPTS,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BACKOFF_FACTOR,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
    RETRY_MAX_RETRIES,
)

DEFAULT_SCOPES = [
    "threads_basic",
    "threads_content_publish",
    "threads_manage_insights",
    "threads_manage_replies",
    "threads_read_replies",
]

DEFAULT_API_BASE_URL = "https://graph.threads.net"
DEFAULT_API_VERSION = "v1.0"
DEFAULT_AUTHORIZE_URL = "https://threads.net/oauth/authorize"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:0/callback"


class Credentials(BaseModel):
    """OAuth application credentials. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str = Field(repr=False)
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: tuple[str, ...] = tuple(DEFAULT_SCOPES)


class RetryPolicy(BaseModel):
    """Retry/backoff settings for transient failures."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=RETRY_MAX_RETRIES, ge=0)
    initial_delay: float = Field(default=RETRY_INITIAL_DELAY_SECONDS, ge=0)
    max_delay: float = Field(default=RETRY_MAX_DELAY_SECONDS, ge=0)
    backoff_factor: float = Field(default=RETRY_BACKOFF_FACTOR, ge=1.0)

    @model_validator(mode="after")
    def _check_delays(self) -> "RetryPolicy":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-indexed), capped at max_delay."""
        return min(self.max_delay, self.initial_delay * (self.backoff_factor ** attempt))


class PollSettings(BaseModel):
    """Container status polling settings."""

    model_config = ConfigDict(frozen=True)

    interval: float = Field(default=POLL_INTERVAL_SECONDS, gt=0)
    max_attempts: int = Field(default=POLL_MAX_ATTEMPTS, ge=1)


class ThreadsSettings(BaseSettings):
    """Full client configuration, read from THREADS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="THREADS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    client_id: str = ""
    client_secret: str = Field(default="", repr=False)
    redirect_uri: str = DEFAULT_REDIRECT_URI
    # comma-separated in the environment, a list in YAML
    scopes: list[str] | str = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    # Direct token injection (skips the OAuth flow)
    access_token: str | None = Field(default=None, repr=False)
    user_id: str | None = None

    api_base_url: str = DEFAULT_API_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    request_timeout: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0)

    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    poll: PollSettings = Field(default_factory=PollSettings)

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [s.strip() for s in value.split(",") if s.strip()]
        return value

    @field_validator("api_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def base_url(self) -> str:
        """Versioned API root, e.g. https://graph.threads.net/v1.0."""
        return f"{self.api_base_url}/{self.api_version}"

    def credentials(self) -> Credentials:
        """Build the immutable OAuth credentials from these settings."""
        return Credentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            scopes=tuple(self.scopes),
        )

    def missing_credentials(self) -> list[str]:
        """Names of the settings still required for the OAuth flow."""
        missing = []
        if not self.client_id:
            missing.append("client_id (or THREADS_CLIENT_ID)")
        if not self.client_secret:
            missing.append("client_secret (or THREADS_CLIENT_SECRET)")
        return missing


def load_threads_config(config_path: Path | None = None, env_file: Path | None = None) -> ThreadsSettings:
    """Load settings from an optional YAML file layered over the environment.

    Values in the YAML file win over THREADS_* environment variables. A
    missing file yields environment-only settings.
    """
    load_dotenv(env_file)

    if config_path is None or not config_path.exists():
        return ThreadsSettings()

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ThreadsSettings(**data)
