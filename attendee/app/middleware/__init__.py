"""Middleware package for the attendee application."""

from attendee.app.middleware.rate_limit import RateLimiter, RateLimiterRegistry
from attendee.app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimiter",
    "RateLimiterRegistry",
    "SecurityHeadersMiddleware",
]
