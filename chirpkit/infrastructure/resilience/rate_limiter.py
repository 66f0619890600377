"""Cooperative self-throttle for endpoints limited to one request per second.

The full-archive search endpoint rejects more than one call per second
regardless of the remaining quota, so calls matching its URL pattern are
spaced at least `min_interval_ms` apart. Other URLs never touch the lock.
"""

import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional

from chirpkit.infrastructure.resilience.sleeper import Sleeper

logger = logging.getLogger(__name__)

# see https://developer.twitter.com/en/docs/twitter-api/tweets/search/api-reference/get-tweets-search-all
FULL_ARCHIVE_SEARCH_PATTERN = "/2/tweets/search/all"
DEFAULT_MIN_INTERVAL_MS = 1000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimitState:
    """Last-call timestamps (ms) per guarded URL pattern.

    One instance is shared by every dispatcher that should be throttled
    together; independent clients get independent instances.
    """

    def __init__(
        self,
        guarded_patterns: Iterable[str] = (FULL_ARCHIVE_SEARCH_PATTERN,),
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ):
        self.guarded_patterns = tuple(guarded_patterns)
        self.min_interval_ms = min_interval_ms
        self._clock = clock
        self._last_call_ms: Dict[str, float] = {}
        self._lock = threading.Lock()

    def match(self, url: str) -> Optional[str]:
        """Returns the guarded pattern contained in `url`, if any."""
        for pattern in self.guarded_patterns:
            if pattern in url:
                return pattern
        return None

    def last_call_ms(self, pattern: str) -> Optional[float]:
        with self._lock:
            return self._last_call_ms.get(pattern)

    def peek_wait_ms(self, pattern: str) -> float:
        """Wait a call would need right now, without reserving a slot."""
        with self._lock:
            return self._wait_ms(pattern, self._clock())

    def reserve(self, pattern: str) -> float:
        """Claims the next dispatch slot for `pattern` and returns how long to wait for it.

        The slot is recorded before the caller sleeps, so concurrent callers
        queue up one interval apart while the lock is only held for the
        read-compare-write.
        """
        with self._lock:
            now = self._clock()
            wait_ms = self._wait_ms(pattern, now)
            self._last_call_ms[pattern] = now + wait_ms
            return wait_ms

    def _wait_ms(self, pattern: str, now: float) -> float:
        last = self._last_call_ms.get(pattern)
        if last is None or now >= last + self.min_interval_ms:
            return 0.0
        return last + self.min_interval_ms - now


class RateLimiter:
    """Applies a RateLimitState before each dispatch."""

    def __init__(self, state: Optional[RateLimitState] = None, sleeper: Optional[Sleeper] = None):
        """Initializes the rate limiter.

        Args:
            state: Shared throttle state. A private one is created if None.
            sleeper: Used for the wait so it can be cancelled.
        """
        self.state = state or RateLimitState()
        self.sleeper = sleeper or Sleeper()
        logger.debug(
            f"RateLimiter initialized: patterns={self.state.guarded_patterns}, "
            f"interval={self.state.min_interval_ms}ms"
        )

    def get_wait_time(self, url: str) -> float:
        """Estimates the seconds needed before `url` may be called."""
        pattern = self.state.match(url)
        if pattern is None:
            return 0.0
        return self.state.peek_wait_ms(pattern) / 1000

    def wait_for_permission(self, url: str) -> float:
        """Blocks until `url` may be dispatched. Returns the milliseconds waited."""
        pattern = self.state.match(url)
        if pattern is None:
            return 0.0
        wait_ms = self.state.reserve(pattern)
        if wait_ms > 0:
            logger.debug(f"sleep {wait_ms:.0f}ms between two calls on {pattern}")
            self.sleeper.sleep(wait_ms / 1000)
        return wait_ms
