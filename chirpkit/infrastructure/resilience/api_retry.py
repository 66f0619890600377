"""Backoff policy for HTTP 429 (rate limited) responses.

Computes how long to wait from the rate-limit headers and decides whether
another attempt is allowed. The dispatcher owns the actual loop.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from chirpkit.domain.models.common import (
    HEADER_RATE_LIMIT_REMAINING,
    HEADER_RATE_LIMIT_RESET,
    HEADER_RETRY_AFTER,
)
from chirpkit.domain.models.request import ApiResponse

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SEC = 300
DEFAULT_MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class RetryPolicy:
    """Value Object describing the 429 retry behaviour.

    `max_attempts` counts the first call, so the default allows one retry.
    """
    automatic_retry: bool = True
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    default_wait_seconds: int = DEFAULT_RETRY_AFTER_SEC

    def can_retry(self, attempt: int) -> bool:
        """Whether attempt number `attempt` (1-based) may be followed by another."""
        return self.automatic_retry and attempt < self.max_attempts


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    return int(value.strip())


def compute_rate_limit_wait(
    response: ApiResponse,
    now: Optional[float] = None,
    default_wait_seconds: int = DEFAULT_RETRY_AFTER_SEC,
) -> int:
    """Seconds to wait after a 429.

    - remaining > 0: the per-second burst limit was hit while quota is left, wait 1s.
    - remaining == 0: wait until the reset timestamp, never less than 1s.
    - otherwise a numeric Retry-After header, else `default_wait_seconds`.
    """
    current = time.time() if now is None else now
    reset_str = response.header(HEADER_RATE_LIMIT_RESET)
    remaining_str = response.header(HEADER_RATE_LIMIT_REMAINING)

    if reset_str is not None and remaining_str is not None:
        try:
            remaining = _parse_int(remaining_str)
            if remaining > 0:
                return 1
            wait = _parse_int(reset_str) - int(current)
            return wait if wait > 0 else 1
        except ValueError as e:
            logger.error(f"Using default retry after because header format is invalid: {reset_str} ({e})")
            return default_wait_seconds

    retry_after_str = response.header(HEADER_RETRY_AFTER)
    if retry_after_str is not None:
        try:
            return max(_parse_int(retry_after_str), 1)
        except ValueError:
            logger.error(f"Using default retry after because header format is invalid: {retry_after_str}")

    return default_wait_seconds
