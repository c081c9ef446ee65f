"""Per-action-class rate limiting.

This module provides rate limiting for attendee write actions (questions,
votes, bookmark toggles). Each action class gets its own limiter with
independent state; the limiters are held by an explicitly constructed
registry that is created at startup and injected where it is needed.
"""

from typing import Any, Iterable, Mapping, Optional

from attendee.app.core.logging import get_logger
from attendee.app.exceptions import ConfigurationError

# Re-export models
from attendee.app.middleware.rate_limit.models import (
    BucketPair,
    RateWindow,
)

# Re-export backends
from attendee.app.middleware.rate_limit.backends import (
    ApproximateSlidingWindowRateLimiter,
    Clock,
    RateLimitBackend,
    SlidingWindowRateLimiter,
    monotonic_ms,
)

logger = get_logger(__name__)

__all__ = [
    # Models
    "RateWindow",
    "BucketPair",
    # Backends
    "RateLimitBackend",
    "SlidingWindowRateLimiter",
    "ApproximateSlidingWindowRateLimiter",
    "Clock",
    "monotonic_ms",
    # Main classes
    "RateLimiter",
    "RateLimiterRegistry",
    "DEFAULT_ACTION_CLASSES",
    "GENERAL_ACTION_CLASS",
]

GENERAL_ACTION_CLASS = "general"
DEFAULT_ACTION_CLASSES = ("questions", "votes", "bookmarks", GENERAL_ACTION_CLASS)

_ALGORITHMS = {
    "sliding_window": SlidingWindowRateLimiter,
    "approximate": ApproximateSlidingWindowRateLimiter,
}


class RateLimiter:
    """Main rate limiter that selects the appropriate backend.

    Uses the exact sliding window by default; ``algorithm="approximate"``
    selects the two-bucket approximation for very high request rates.
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        algorithm: str = "sliding_window",
        clock: Optional[Clock] = None,
        max_entries: int = SlidingWindowRateLimiter.DEFAULT_MAX_ENTRIES,
    ):
        """Initialize rate limiter with appropriate backend.

        Args:
            max_requests: Maximum attempts admitted per window
            window_ms: Window length in milliseconds
            algorithm: sliding_window or approximate
            clock: Zero-argument callable returning the current time in ms
            max_entries: Maximum number of identities to track

        Raises:
            ConfigurationError: On an unknown algorithm or non-positive limits
        """
        backend_cls = _ALGORITHMS.get(algorithm)
        if backend_cls is None:
            raise ConfigurationError(f"Unknown rate limit algorithm: {algorithm!r}")
        self.algorithm = algorithm
        self._backend: RateLimitBackend = backend_cls(
            max_requests=max_requests,
            window_ms=window_ms,
            clock=clock,
            max_entries=max_entries,
        )

    @property
    def max_requests(self) -> int:
        return self._backend.max_requests

    @property
    def window_ms(self) -> int:
        return self._backend.window_ms

    @property
    def tracked_identities(self) -> int:
        return self._backend.tracked_identities

    def is_allowed(self, identity: str) -> bool:
        """Check if an attempt is allowed, recording it when it is."""
        return self._backend.is_allowed(identity)

    def remaining(self, identity: str) -> int:
        """Attempts left for the identity in the current window."""
        return self._backend.remaining(identity)

    def retry_after_ms(self, identity: str) -> int:
        """Milliseconds until the identity may try again."""
        return self._backend.retry_after_ms(identity)

    def cleanup(self) -> int:
        """Clean up expired entries."""
        return self._backend.cleanup()

    def reset(self, identity: Optional[str] = None) -> None:
        self._backend.reset(identity)


class RateLimiterRegistry:
    """Named rate limiters, one per action class.

    Lookups for an unregistered action class fall back to the general
    limiter, which therefore must always be present.
    """

    def __init__(self, limiters: Mapping[str, Any], fallback: str = GENERAL_ACTION_CLASS):
        if fallback not in limiters:
            raise ConfigurationError(
                f"Rate limiter registry requires a '{fallback}' fallback limiter"
            )
        self._limiters = dict(limiters)
        self._fallback = fallback

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        action_classes: Iterable[str] = DEFAULT_ACTION_CLASSES,
        clock: Optional[Clock] = None,
    ) -> "RateLimiterRegistry":
        """Build the registry from ``rate_limit_<class>_*`` settings."""
        limiters = {}
        for action_class in action_classes:
            max_requests, window_ms = settings.rate_limit_for(action_class)
            limiters[action_class] = RateLimiter(
                max_requests=max_requests,
                window_ms=window_ms,
                algorithm=settings.rate_limit_algorithm,
                clock=clock,
                max_entries=settings.rate_limit_max_entries,
            )
            logger.debug(
                f"Registered {action_class} limiter: {max_requests} per {window_ms}ms"
            )
        return cls(limiters)

    def register(self, action_class: str, limiter: Any) -> None:
        self._limiters[action_class] = limiter

    def get(self, action_class: str) -> Any:
        """Return the limiter for an action class, or the general one."""
        limiter = self._limiters.get(action_class)
        if limiter is None:
            return self._limiters[self._fallback]
        return limiter

    def __contains__(self, action_class: object) -> bool:
        return action_class in self._limiters

    @property
    def action_classes(self) -> list[str]:
        return list(self._limiters)

    def cleanup(self) -> int:
        """Sweep every limiter. Returns the total number of identities removed."""
        return sum(limiter.cleanup() for limiter in self._limiters.values())
