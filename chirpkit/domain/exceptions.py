"""Error taxonomy for the authenticated request layer.

Every error raised by chirpkit derives from ChirpkitError so callers can
catch the whole family at a command boundary, while still being able to
tell transport failures, rate limits and decode problems apart.
"""

from typing import Any, Mapping, Optional


class ChirpkitError(Exception):
    """Base exception for all library errors."""


class ConfigurationError(ChirpkitError):
    """Raised when credentials, settings or the signing algorithm are unavailable."""


class OperationCancelled(ChirpkitError):
    """Raised when a caller cancels while the client is suspended (throttle, backoff, polling)."""


# --- Request errors ---

class RequestError(ChirpkitError):
    """A request failed. Carries enough context to decide whether to retry."""

    def __init__(
        self,
        message: str,
        *,
        method: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.body = body


class TransportError(RequestError):
    """The network call never completed (connection, timeout, I/O)."""


class RateLimitExceeded(RequestError):
    """HTTP 429 received and either retry is disabled or attempts ran out."""

    def __init__(
        self,
        message: str,
        *,
        reset_at: Optional[str] = None,
        remaining: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.remaining = remaining
        self.retry_after_seconds = retry_after_seconds


class DecodeError(RequestError):
    """The response body is not well-formed for the requested shape."""


# --- Chunked upload errors ---

class UploadError(ChirpkitError):
    """Base class for media upload failures. The whole session is abandoned."""

    def __init__(self, message: str, *, media_id: Optional[str] = None):
        super().__init__(message)
        self.media_id = media_id


class PayloadTooLarge(UploadError):
    """The payload exceeds the ceiling of its media category."""

    def __init__(self, message: str, *, size: int, limit: int, category: str):
        super().__init__(message)
        self.size = size
        self.limit = limit
        self.category = category


class UploadInitFailed(UploadError):
    """INIT did not yield a media identifier."""


class UploadAppendFailed(UploadError):
    """An APPEND call for one segment was rejected or never completed."""

    def __init__(self, message: str, *, media_id: Optional[str] = None, segment_index: int):
        super().__init__(message, media_id=media_id)
        self.segment_index = segment_index


class UploadStalled(UploadError):
    """Server-side processing stopped advancing for too many polls."""

    def __init__(self, message: str, *, media_id: Optional[str] = None, stalled_polls: int):
        super().__init__(message, media_id=media_id)
        self.stalled_polls = stalled_polls


class UploadProcessingFailed(UploadError):
    """The server reported the `failed` processing state."""
