import threading
import time
from unittest.mock import MagicMock

import pytest

from chirpkit.infrastructure.resilience.rate_limiter import (
    FULL_ARCHIVE_SEARCH_PATTERN,
    RateLimiter,
    RateLimitState,
)
from chirpkit.infrastructure.resilience.sleeper import Sleeper

SEARCH_URL = "https://api.twitter.com/2/tweets/search/all?query=from%3Atwitterdev"
OTHER_URL = "https://api.twitter.com/2/tweets/search/recent?query=x"


def test_match_only_guarded_pattern():
    state = RateLimitState()
    assert state.match(SEARCH_URL) == FULL_ARCHIVE_SEARCH_PATTERN
    assert state.match(OTHER_URL) is None


def test_reservations_queue_one_interval_apart(fake_clock):
    state = RateLimitState(clock=fake_clock)
    assert state.reserve(FULL_ARCHIVE_SEARCH_PATTERN) == 0
    assert state.reserve(FULL_ARCHIVE_SEARCH_PATTERN) == 1000
    assert state.reserve(FULL_ARCHIVE_SEARCH_PATTERN) == 2000
    assert state.last_call_ms(FULL_ARCHIVE_SEARCH_PATTERN) == 2000


def test_no_wait_once_interval_elapsed(fake_clock):
    state = RateLimitState(clock=fake_clock)
    state.reserve(FULL_ARCHIVE_SEARCH_PATTERN)
    fake_clock.advance(400)
    assert state.peek_wait_ms(FULL_ARCHIVE_SEARCH_PATTERN) == 600
    fake_clock.advance(600)
    assert state.reserve(FULL_ARCHIVE_SEARCH_PATTERN) == 0


def test_wait_for_permission_sleeps_remaining_interval(fake_clock, sleeper):
    limiter = RateLimiter(RateLimitState(clock=fake_clock), sleeper)

    assert limiter.wait_for_permission(SEARCH_URL) == 0
    fake_clock.advance(250)
    assert limiter.get_wait_time(SEARCH_URL) == pytest.approx(0.75)
    assert limiter.wait_for_permission(SEARCH_URL) == 750

    assert sleeper.sleeps == [pytest.approx(0.75)]


def test_unguarded_url_never_takes_the_lock(sleeper):
    state = RateLimitState()
    state._lock = MagicMock()
    limiter = RateLimiter(state, sleeper)

    assert limiter.wait_for_permission(OTHER_URL) == 0
    assert limiter.get_wait_time(OTHER_URL) == 0

    state._lock.__enter__.assert_not_called()
    assert sleeper.sleeps == []


def test_states_are_independent(fake_clock):
    first, second = RateLimitState(clock=fake_clock), RateLimitState(clock=fake_clock)
    first.reserve(FULL_ARCHIVE_SEARCH_PATTERN)
    assert second.reserve(FULL_ARCHIVE_SEARCH_PATTERN) == 0


def test_concurrent_callers_are_spaced_in_real_time():
    """Two threads hitting the guarded endpoint are dispatched at least one interval apart."""
    limiter = RateLimiter(RateLimitState(), Sleeper())
    dispatched = []
    lock = threading.Lock()

    def call():
        limiter.wait_for_permission(SEARCH_URL)
        with lock:
            dispatched.append(time.monotonic())

    threads = [threading.Thread(target=call) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(dispatched) == 2
    first, second = sorted(dispatched)
    assert second - first >= 0.95
