"""Rate limiting data models.

This module contains dataclasses for rate limit state and results.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Generic, TypeVar

RecordT = TypeVar("RecordT")


@dataclass
class RateWindow:
    """Timestamps (ms) of accepted attempts inside the sliding window.

    Timestamps are appended in non-decreasing order, so the oldest one is
    always at the left end.
    """
    timestamps: Deque[float] = field(default_factory=deque)

    def prune(self, now: float, window_ms: int) -> None:
        """Drop timestamps that are no longer within the window."""
        while self.timestamps and now - self.timestamps[0] >= window_ms:
            self.timestamps.popleft()

    def count_within(self, now: float, window_ms: int) -> int:
        """Count unexpired timestamps without modifying the window."""
        return sum(1 for ts in self.timestamps if now - ts < window_ms)


@dataclass
class BucketPair:
    """Fixed-bucket counters for the approximate sliding window."""
    bucket_start: float = 0.0
    current: int = 0
    previous: int = 0


@dataclass(eq=False)
class IdentityEntry(Generic[RecordT]):
    """An identity's limiter record together with the lock that guards it.

    ``live`` is cleared when the entry leaves the table, so a caller that
    fetched it just before eviction or cleanup can tell it is stale.
    """
    record: RecordT
    lock: threading.Lock = field(default_factory=threading.Lock)
    live: bool = True
