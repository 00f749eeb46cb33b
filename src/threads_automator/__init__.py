"""Threads Automator - async client for the Threads publishing API."""

__version__ = "0.1.0"
