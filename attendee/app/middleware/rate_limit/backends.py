"""In-memory rate limit backends.

Both backends keep one record per identity and are safe to call from many
threads at once. Every record carries its own lock, so two concurrent
attempts by one identity can never both take the last free slot, while
distinct identities never wait on each other. The shared table lock is
only held for dictionary bookkeeping, never while a record is evaluated.

Memory optimization:
- Uses OrderedDict for LRU cache behavior
- Limits max entries to prevent unbounded memory growth
- cleanup() sweeps identities whose window has fully expired
"""

from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Generic, Iterator, Optional

from attendee.app.core.logging import get_logger
from attendee.app.exceptions import ConfigurationError
from attendee.app.middleware.rate_limit.models import (
    BucketPair,
    IdentityEntry,
    RateWindow,
    RecordT,
)

logger = get_logger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default limiter clock, in milliseconds."""
    return time.monotonic() * 1000.0


def _require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return value


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    max_requests: int
    window_ms: int

    @abstractmethod
    def is_allowed(self, identity: str) -> bool:
        """Record an attempt for ``identity`` if it is under its limit.

        Returns:
            True if the attempt was admitted (and recorded), False otherwise
        """

    @abstractmethod
    def remaining(self, identity: str) -> int:
        """Number of attempts ``identity`` may still make right now. Read-only."""

    @abstractmethod
    def retry_after_ms(self, identity: str) -> int:
        """Milliseconds until ``identity`` may make another attempt (0 if it may now)."""

    @abstractmethod
    def cleanup(self) -> int:
        """Remove identities with no live state. Returns how many were removed."""

    @abstractmethod
    def reset(self, identity: Optional[str] = None) -> None:
        """Forget one identity, or every identity when None."""


class _KeyedLimiter(RateLimitBackend, Generic[RecordT]):
    """Per-identity record table with per-identity locks and LRU eviction."""

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        clock: Optional[Clock] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Maximum attempts admitted per window
            window_ms: Window length in milliseconds
            clock: Zero-argument callable returning the current time in ms
            max_entries: Maximum number of identities to track (LRU eviction)

        Raises:
            ConfigurationError: If any limit is not a positive integer
        """
        self.max_requests = _require_positive_int("max_requests", max_requests)
        self.window_ms = _require_positive_int("window_ms", window_ms)
        self._max_entries = _require_positive_int("max_entries", max_entries)
        self._clock = clock or monotonic_ms

        self._entries: OrderedDict[str, IdentityEntry[RecordT]] = OrderedDict()
        # Guards the table structure only; each record is guarded by its entry lock.
        self._table_lock = threading.Lock()

    @abstractmethod
    def _new_record(self) -> RecordT: ...

    @abstractmethod
    def _admit(self, record: RecordT, now: float) -> bool: ...

    @abstractmethod
    def _used(self, record: RecordT, now: float) -> float: ...

    @abstractmethod
    def _wait_ms(self, record: RecordT, now: float) -> float: ...

    @abstractmethod
    def _is_expired(self, record: RecordT, now: float) -> bool: ...

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction. Caller holds the table lock."""
        if len(self._entries) > self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._entries))):
                _, entry = self._entries.popitem(last=False)
                entry.live = False
            logger.debug(f"Rate limiter evicted {remove_count} least recently used identities")

    def _get_or_create(self, identity: str) -> IdentityEntry[RecordT]:
        with self._table_lock:
            entry = self._entries.get(identity)
            if entry is None:
                entry = IdentityEntry(self._new_record())
                self._entries[identity] = entry
                self._enforce_lru_limit()
            else:
                # Move key to end (most recently used)
                self._entries.move_to_end(identity)
            return entry

    def _peek(self, identity: str) -> Optional[IdentityEntry[RecordT]]:
        with self._table_lock:
            return self._entries.get(identity)

    def is_allowed(self, identity: str) -> bool:
        while True:
            entry = self._get_or_create(identity)
            with entry.lock:
                # Removed by cleanup() between lookup and lock; fetch the new entry.
                if entry.live:
                    return self._admit(entry.record, self._clock())

    def remaining(self, identity: str) -> int:
        entry = self._peek(identity)
        if entry is None:
            return self.max_requests
        with entry.lock:
            if not entry.live:
                return self.max_requests
            used = self._used(entry.record, self._clock())
        return max(0, math.floor(self.max_requests - used))

    def retry_after_ms(self, identity: str) -> int:
        entry = self._peek(identity)
        if entry is None:
            return 0
        with entry.lock:
            if not entry.live:
                return 0
            return max(0, math.ceil(self._wait_ms(entry.record, self._clock())))

    def cleanup(self) -> int:
        with self._table_lock:
            candidates = list(self._entries.items())

        removed = 0
        for identity, entry in candidates:
            with entry.lock:
                if not self._is_expired(entry.record, self._clock()):
                    continue
                with self._table_lock:
                    if self._entries.get(identity) is entry:
                        del self._entries[identity]
                        entry.live = False
                        removed += 1
        if removed:
            logger.debug(f"Rate limiter cleanup removed {removed} identities")
        return removed

    def reset(self, identity: Optional[str] = None) -> None:
        with self._table_lock:
            if identity is None:
                entries = list(self._entries.values())
                self._entries.clear()
            else:
                entry = self._entries.pop(identity, None)
                entries = [entry] if entry is not None else []
            for entry in entries:
                entry.live = False

    @property
    def tracked_identities(self) -> int:
        """Number of identities currently holding a record."""
        with self._table_lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        with self._table_lock:
            return iter(list(self._entries))




class SlidingWindowRateLimiter(_KeyedLimiter[RateWindow]):
    """Exact sliding window limiter.

    Keeps the timestamp of every admitted attempt inside the window, so each
    slot frees up individually as its timestamp ages out. Costs
    O(window occupancy) per check.
    """

    def _new_record(self) -> RateWindow:
        return RateWindow()

    def _admit(self, record: RateWindow, now: float) -> bool:
        record.prune(now, self.window_ms)
        if len(record.timestamps) >= self.max_requests:
            return False
        record.timestamps.append(now)
        return True

    def _used(self, record: RateWindow, now: float) -> float:
        return record.count_within(now, self.window_ms)

    def _wait_ms(self, record: RateWindow, now: float) -> float:
        live = [ts for ts in record.timestamps if now - ts < self.window_ms]
        if len(live) < self.max_requests:
            return 0
        # The slot frees when the oldest attempt that keeps us at the limit expires.
        return live[len(live) - self.max_requests] + self.window_ms - now

    def _is_expired(self, record: RateWindow, now: float) -> bool:
        record.prune(now, self.window_ms)
        return not record.timestamps


class ApproximateSlidingWindowRateLimiter(_KeyedLimiter[BucketPair]):
    """Two-bucket approximation of a sliding window.

    Counts attempts in the current fixed bucket and weights the previous
    bucket by how much of it still overlaps the trailing window. O(1) per
    check and constant memory per identity, at the cost of accuracy near
    bucket boundaries: it assumes attempts in the previous bucket were
    evenly spread, so it may admit or reject slightly differently from the
    exact limiter.
    """

    def _roll(self, record: BucketPair, now: float) -> float:
        start = math.floor(now / self.window_ms) * self.window_ms
        if start != record.bucket_start:
            if start - record.bucket_start == self.window_ms:
                record.previous = record.current
            else:
                record.previous = 0
            record.current = 0
            record.bucket_start = start
        return start

    def _estimate(self, record: BucketPair, now: float) -> float:
        start = self._roll(record, now)
        overlap = 1.0 - (now - start) / self.window_ms
        return record.previous * overlap + record.current

    def _new_record(self) -> BucketPair:
        # Buckets roll on first use, so no clock read is needed here.
        return BucketPair()

    def _admit(self, record: BucketPair, now: float) -> bool:
        if self._estimate(record, now) >= self.max_requests:
            return False
        record.current += 1
        return True

    def _used(self, record: BucketPair, now: float) -> float:
        # Evaluate on a copy: remaining() must not roll the buckets.
        return self._estimate(BucketPair(record.bucket_start, record.current, record.previous), now)

    def _wait_ms(self, record: BucketPair, now: float) -> float:
        if self._used(record, now) < self.max_requests:
            return 0
        start = math.floor(now / self.window_ms) * self.window_ms
        return start + self.window_ms - now

    def _is_expired(self, record: BucketPair, now: float) -> bool:
        self._roll(record, now)
        return record.current == 0 and record.previous == 0
