"""Executes ApiRequests over HTTP with signing, throttling and 429 handling.

Every call goes through `send`, which:

1. waits for the endpoint self-throttle (only for guarded URL patterns),
2. signs the request with OAuth 1.0a when asked to,
3. transmits it with `requests`, turning I/O failures into TransportError,
4. on 429 either raises RateLimitExceeded or sleeps and resends, up to
   the RetryPolicy's attempt budget,
5. logs other non-2xx responses and hands them back for decoding, since
   the API puts structured error detail in the body.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

import requests

from chirpkit.domain.events.api_events import (
    ApiCallFailed,
    ApiCallSucceeded,
    DomainEvent,
    EventListener,
    RateLimitHit,
    RequestThrottled,
    RetryScheduled,
)
from chirpkit.domain.exceptions import ConfigurationError, DecodeError, RateLimitExceeded, TransportError
from chirpkit.domain.models.common import HttpMethod
from chirpkit.domain.models.request import ApiRequest, ApiResponse, OAuthCredentials
from chirpkit.infrastructure.auth.oauth1 import OAuth1Signer
from chirpkit.infrastructure.resilience.api_retry import RetryPolicy, compute_rate_limit_wait
from chirpkit.infrastructure.resilience.rate_limiter import RateLimiter, RateLimitState
from chirpkit.infrastructure.resilience.sleeper import Sleeper

logger = logging.getLogger(__name__)

T = TypeVar("T")
TargetShape = Union[Type[str], Type[dict], Type[list], Callable[[Any], T]]

DEFAULT_TIMEOUT_SECONDS = 30.0


def log_api_error(method: str, url: str, body: str, code: int) -> None:
    logger.error(f"({method}) Error calling {url} {body} - {code}")


class RequestDispatcher:
    """Resilient, authenticated request layer."""

    def __init__(
        self,
        credentials: Optional[OAuthCredentials] = None,
        session: Optional[requests.Session] = None,
        rate_limit_state: Optional[RateLimitState] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleeper: Optional[Sleeper] = None,
        clock: Callable[[], float] = time.time,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        event_listener: Optional[EventListener] = None,
        signer: Optional[OAuth1Signer] = None,
    ):
        """Initializes the dispatcher.

        Args:
            credentials: OAuth material; required for signed requests unless `signer` is given.
            session: HTTP session to send through. A new requests.Session if None.
            rate_limit_state: Throttle state, shared between dispatchers that should
                be serialized together. A private one is created if None.
            retry_policy: 429 handling. Defaults to one automatic retry.
            sleeper: Performs (cancellable) throttle and backoff waits.
            clock: Wall clock in Unix seconds, used against `x-rate-limit-reset`.
            timeout: Per-request timeout in seconds.
            event_listener: Optional callback receiving domain events.
            signer: Overrides the signer built from `credentials`.
        """
        self.signer = signer or (OAuth1Signer(credentials) if credentials else None)
        self.session = session or requests.Session()
        self.sleeper = sleeper or Sleeper()
        self.rate_limiter = RateLimiter(rate_limit_state, self.sleeper)
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._clock = clock
        self._event_listener = event_listener
        logger.info(
            f"RequestDispatcher initialized: automatic_retry={self.retry_policy.automatic_retry}, "
            f"max_attempts={self.retry_policy.max_attempts}, timeout={timeout}s"
        )

    # --- Events ---

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_listener:
            self._event_listener(event)

    # --- Sending ---

    def send(self, request: ApiRequest, sign_required: bool = True) -> ApiResponse:
        """Sends `request`, applying throttle, signature and the 429 policy.

        Returns:
            The final response, whatever its status (except 429).

        Raises:
            ConfigurationError: If signing is required but no credentials were given.
            TransportError: If the network call never completed.
            RateLimitExceeded: On 429 with retry disabled or attempts exhausted.
            OperationCancelled: If a wait was cancelled.
        """
        if sign_required and self.signer is None:
            raise ConfigurationError("Signed request requested but no OAuth credentials are configured")

        attempt = 0
        while True:
            attempt += 1
            waited_ms = self.rate_limiter.wait_for_permission(request.url)
            if waited_ms > 0:
                self._dispatch_event(RequestThrottled(url=request.url, wait_ms=int(waited_ms)))

            # Re-signed on every attempt so each resend carries a fresh nonce and timestamp
            prepared = self.signer.sign(request) if sign_required else request
            response = self._transmit(prepared)

            logger.debug(
                f"Response code: {response.status_code} to url: '{request.url}' headers: "
                f"x-rate-limit-reset: {response.header('x-rate-limit-reset')} "
                f"x-rate-limit-remaining: {response.header('x-rate-limit-remaining')}"
            )

            if response.status_code == 429:
                self._handle_rate_limited(response, attempt)
                continue

            if not response.ok:
                log_api_error(request.method.value, request.url, response.text, response.status_code)
                self._dispatch_event(ApiCallFailed(
                    method=request.method.value,
                    url=request.url,
                    error_type="HTTPStatus",
                    error_message=response.text[:200],
                    status_code=response.status_code,
                ))
            return response

    def _transmit(self, request: ApiRequest) -> ApiResponse:
        kwargs: Dict[str, Any] = {
            "headers": dict(request.headers),
            "timeout": self.timeout,
        }
        if request.query_params:
            kwargs["params"] = list(request.query_params)
        if request.multipart:
            kwargs["files"] = [
                (part.name, (part.filename, part.data, part.content_type)) for part in request.multipart
            ]
            if request.body_params:
                kwargs["data"] = list(request.body_params)
        elif request.raw_body is not None:
            kwargs["data"] = request.raw_body
        elif request.body_params:
            kwargs["data"] = list(request.body_params)

        method = request.method.value
        start_time = time.perf_counter()
        try:
            http_response = self.session.request(method, request.url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Error occurred on executing request {method} {request.url}: {e}", exc_info=True)
            self._dispatch_event(ApiCallFailed(
                method=method, url=request.url, error_type=type(e).__name__, error_message=str(e),
            ))
            raise TransportError(
                f"{method} {request.url} did not complete: {e}", method=method, url=request.url,
            ) from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        response = ApiResponse(
            method=method,
            url=request.url,
            status_code=http_response.status_code,
            headers=dict(http_response.headers),
            text=http_response.text,
        )
        if response.ok:
            self._dispatch_event(ApiCallSucceeded(
                method=method, url=request.url, status_code=response.status_code, latency_ms=latency_ms,
            ))
        return response

    def _handle_rate_limited(self, response: ApiResponse, attempt: int) -> None:
        """Sleeps before the next attempt, or raises RateLimitExceeded."""
        snapshot = response.rate_limit_snapshot()
        logger.info(
            f"Rate limit exceeded, x-rate-limit-reset: {snapshot['reset']} "
            f"x-rate-limit-remaining: {snapshot['remaining']}, x-rate-limit-limit: {snapshot['limit']}"
        )
        self._dispatch_event(RateLimitHit(url=response.url, **snapshot))

        error_context = dict(
            reset_at=snapshot["reset"],
            remaining=snapshot["remaining"],
            method=response.method,
            url=response.url,
            status_code=response.status_code,
            headers=response.headers,
            body=response.text,
        )
        if not self.retry_policy.automatic_retry:
            raise RateLimitExceeded(f"Rate limit exceeded on {response.url}", **error_context)

        wait_seconds = compute_rate_limit_wait(
            response, now=self._clock(), default_wait_seconds=self.retry_policy.default_wait_seconds,
        )
        if not self.retry_policy.can_retry(attempt):
            logger.error(f"Rate limit still exceeded on {response.url} after {attempt} attempt(s)")
            raise RateLimitExceeded(
                f"Rate limit exceeded on {response.url} after {attempt} attempt(s)",
                retry_after_seconds=wait_seconds,
                **error_context,
            )

        logger.info(f"Rate limit exceeded, new retry in {wait_seconds}s (attempt {attempt + 1}/{self.retry_policy.max_attempts})")
        self._dispatch_event(RetryScheduled(url=response.url, attempt_number=attempt + 1, delay_seconds=wait_seconds))
        self.sleeper.sleep(wait_seconds)

    # --- Decoding ---

    @staticmethod
    def decode(response: ApiResponse, target_shape: TargetShape) -> Any:
        """Converts the response body into `target_shape`.

        `str` returns the raw text, `dict`/`list` check the JSON type, any
        other callable receives the parsed JSON.

        Raises:
            DecodeError: If the body is not well-formed for the shape.
        """
        if target_shape is str:
            return response.text

        context = dict(
            method=response.method,
            url=response.url,
            status_code=response.status_code,
            headers=response.headers,
            body=response.text,
        )
        try:
            data = json.loads(response.text)
        except ValueError as e:
            raise DecodeError(f"Response from {response.url} is not valid JSON: {e}", **context) from e

        if target_shape in (dict, list):
            if not isinstance(data, target_shape):
                raise DecodeError(
                    f"Expected a JSON {target_shape.__name__} from {response.url}, got {type(data).__name__}",
                    **context,
                )
            return data

        try:
            return target_shape(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Cannot decode response from {response.url}: {e!r}", **context) from e

    # --- Public request API ---

    def execute(self, request: ApiRequest, sign_required: bool = True, target_shape: TargetShape = dict) -> Any:
        """Sends `request` and decodes the body into `target_shape`."""
        response = self.send(request, sign_required)
        logger.debug(f"stringResponse : {response.text}")
        return self.decode(response, target_shape)

    def execute_raw(self, request: ApiRequest, sign_required: bool = True) -> str:
        """Sends `request` and returns the unparsed body."""
        return self.execute(request, sign_required, str)

    def get(self, url: str, params: Optional[Dict[str, str]] = None, target_shape: TargetShape = dict) -> Any:
        return self.execute(ApiRequest.build(HttpMethod.GET, url, params), True, target_shape)

    def post(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        body_json: Optional[str] = None,
        target_shape: TargetShape = dict,
    ) -> Any:
        return self.execute(ApiRequest.build(HttpMethod.POST, url, params, body_json), True, target_shape)

    def post_without_sign(
        self, url: str, params: Optional[Dict[str, str]] = None, target_shape: TargetShape = dict
    ) -> Any:
        return self.execute(ApiRequest.build(HttpMethod.POST, url, params), False, target_shape)

    def put(self, url: str, body_json: Optional[str] = None, target_shape: TargetShape = dict) -> Any:
        return self.execute(ApiRequest.build(HttpMethod.PUT, url, None, body_json), True, target_shape)
