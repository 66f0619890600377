"""Defines common Value Objects used across the request and upload contexts.

These objects represent simple values like URLs, media identifiers or
parameter lists, keeping signatures readable and consistent.
"""

from enum import Enum
from typing import NewType, Tuple, Dict, TypedDict, Optional

# === Core Value Objects ===

Url = NewType("Url", str)                      # Absolute request URL, may carry a query string
MediaId = NewType("MediaId", str)              # Opaque media identifier returned by INIT
Signature = NewType("Signature", str)          # Base64 HMAC-SHA1 signature
ParamPairs = Tuple[Tuple[str, str], ...]       # Ordered parameters, duplicates allowed


class HttpMethod(str, Enum):
    """HTTP verbs used by the API."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def permits_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT)


# === Rate limit headers ===
HEADER_RATE_LIMIT_RESET = "x-rate-limit-reset"
HEADER_RATE_LIMIT_REMAINING = "x-rate-limit-remaining"
HEADER_RATE_LIMIT_LIMIT = "x-rate-limit-limit"
HEADER_RETRY_AFTER = "Retry-After"


# --- Structured Data ---
class RateLimitSnapshot(TypedDict):
    """Raw rate-limit header values captured from a response."""
    reset: Optional[str]
    remaining: Optional[str]
    limit: Optional[str]


def to_param_pairs(params: Optional[Dict[str, str]]) -> ParamPairs:
    """Normalizes a mapping (or None) into ordered string pairs."""
    if not params:
        return ()
    return tuple((str(k), "" if v is None else str(v)) for k, v in params.items())
