"""Utility modules for Threads Automator."""

from .logging_config import (
    LOG_FORMAT,
    setup_logging,
)

__all__ = [
    "LOG_FORMAT",
    "setup_logging",
]
