"""Domain Events related to API calls, rate limiting and media uploads.

Examples include events for when calls are throttled, rate limited,
retried, fail, succeed, or when an upload segment has been sent.
"""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


EventListener = Callable[[DomainEvent], None]

# --- Request Events ---

@dataclass
class RequestThrottled(DomainEvent):
    """Emitted when a call to a guarded endpoint waits for its one-per-second slot."""
    url: str
    wait_ms: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Emitted when a call returns a 2xx response."""
    method: str
    url: str
    status_code: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Emitted when a call fails (transport error or non-2xx status)."""
    method: str
    url: str
    error_type: str
    error_message: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RateLimitHit(DomainEvent):
    """Emitted when the server answers 429."""
    url: str
    reset: Optional[str]
    remaining: Optional[str]
    limit: Optional[str]
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Emitted before sleeping ahead of a resend."""
    url: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

# --- Upload Events ---

@dataclass
class UploadSegmentSent(DomainEvent):
    """Emitted after each APPEND call succeeds."""
    media_id: str
    segment_index: int
    bytes_sent: int
    total_bytes: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class UploadProcessingPolled(DomainEvent):
    """Emitted for each FINALIZE/STATUS response observed while waiting for processing."""
    media_id: str
    state: Optional[str]
    progress_percent: Optional[int]
    check_after_secs: Optional[int]
    timestamp: float = field(default_factory=time.time)
