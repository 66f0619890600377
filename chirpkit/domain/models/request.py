"""Domain models for outgoing requests and received responses.

An ApiRequest is immutable: signing produces a new request with an extra
Authorization header rather than editing the original.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from .common import HttpMethod, ParamPairs, RateLimitSnapshot, to_param_pairs
from .common import HEADER_RATE_LIMIT_LIMIT, HEADER_RATE_LIMIT_REMAINING, HEADER_RATE_LIMIT_RESET


@dataclass(frozen=True)
class MultipartPart:
    """One part of a multipart/form-data body."""
    name: str
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ApiRequest:
    """A logical request: verb, URL, parameters, headers and optional body."""
    method: HttpMethod
    url: str
    query_params: ParamPairs = ()
    body_params: ParamPairs = ()
    headers: ParamPairs = ()
    raw_body: Optional[bytes] = None
    multipart: Tuple[MultipartPart, ...] = field(default=())

    @classmethod
    def build(
        cls,
        method: HttpMethod,
        url: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> "ApiRequest":
        """Builds a request the way the endpoint layer describes it.

        `params` become query parameters. A string `body` is sent as JSON
        when the verb permits a body, defaulting the Content-Type.
        """
        header_pairs = to_param_pairs(headers)
        raw_body = None
        if body is not None and HttpMethod(method).permits_body:
            raw_body = body.encode("utf-8")
            if not any(k.lower() == "content-type" for k, _ in header_pairs):
                header_pairs = header_pairs + (("Content-Type", "application/json"),)
        return cls(
            method=HttpMethod(method),
            url=url,
            query_params=to_param_pairs(params),
            headers=header_pairs,
            raw_body=raw_body,
        )

    @property
    def base_url(self) -> str:
        """URL without query string or fragment, as used in the signature base string."""
        parts = urlsplit(self.url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    @property
    def url_query_params(self) -> ParamPairs:
        """Parameters embedded in the URL's own query string."""
        return tuple(parse_qsl(urlsplit(self.url).query, keep_blank_values=True))

    @property
    def all_query_params(self) -> ParamPairs:
        return self.url_query_params + self.query_params

    @property
    def is_form_encoded(self) -> bool:
        """Body parameters count towards the signature only for url-encoded forms."""
        return bool(self.body_params) and self.raw_body is None and not self.multipart

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def with_header(self, name: str, value: str) -> "ApiRequest":
        """Returns a copy with `name` set to `value`, replacing any previous value."""
        lowered = name.lower()
        kept = tuple((k, v) for k, v in self.headers if k.lower() != lowered)
        return replace(self, headers=kept + ((name, value),))


@dataclass(frozen=True)
class ApiResponse:
    """Snapshot of an HTTP response."""
    method: str
    url: str
    status_code: int
    headers: Mapping[str, str]
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name)
        if value is not None:
            return value
        lowered = name.lower()
        for key, candidate in self.headers.items():
            if key.lower() == lowered:
                return candidate
        return None

    def rate_limit_snapshot(self) -> RateLimitSnapshot:
        return RateLimitSnapshot(
            reset=self.header(HEADER_RATE_LIMIT_RESET),
            remaining=self.header(HEADER_RATE_LIMIT_REMAINING),
            limit=self.header(HEADER_RATE_LIMIT_LIMIT),
        )


@dataclass(frozen=True)
class OAuthCredentials:
    """Consumer key/secret plus the user access token/secret."""
    api_key: str
    api_secret_key: str
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None

    def __repr__(self) -> str:
        return f"OAuthCredentials(api_key={self.api_key!r}, access_token={self.access_token!r})"
