"""Core utilities for the attendee application."""

from attendee.app.core.config import Settings, settings
from attendee.app.core.logging import get_log_context, get_logger, hash_identity, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "get_log_context",
    "hash_identity",
    "setup_logging",
]
