"""Attaches OAuth 1.0a Authorization headers to outgoing requests."""

import logging
from typing import Callable, List, Tuple

from chirpkit.domain.models.request import ApiRequest, OAuthCredentials
from chirpkit.infrastructure.auth import signature

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "Authorization"


class OAuth1Signer:
    """Signs ApiRequests with the user-context OAuth 1.0a scheme."""

    def __init__(
        self,
        credentials: OAuthCredentials,
        nonce_factory: Callable[[], str] = signature.generate_nonce,
        timestamp_factory: Callable[[], str] = signature.generate_timestamp,
    ):
        """Initializes the signer.

        Args:
            credentials: Consumer and access token material.
            nonce_factory: Produces a fresh nonce per signature.
            timestamp_factory: Produces the oauth_timestamp value.

        Raises:
            ConfigurationError: If HMAC-SHA1 is unavailable.
        """
        signature.check_algorithm_available()
        self.credentials = credentials
        self._nonce_factory = nonce_factory
        self._timestamp_factory = timestamp_factory

    def oauth_parameters(self) -> List[Tuple[str, str]]:
        params = [
            ("oauth_consumer_key", self.credentials.api_key),
            ("oauth_nonce", self._nonce_factory()),
            ("oauth_signature_method", signature.SIGNATURE_METHOD),
            ("oauth_timestamp", self._timestamp_factory()),
            ("oauth_version", signature.OAUTH_VERSION),
        ]
        if self.credentials.access_token:
            params.append(("oauth_token", self.credentials.access_token))
        return params

    def authorization_header(self, request: ApiRequest) -> str:
        """Computes the `OAuth ...` header value for `request`."""
        oauth_params = self.oauth_parameters()
        signed_params = list(oauth_params) + list(request.all_query_params)
        if request.is_form_encoded:
            signed_params += list(request.body_params)

        oauth_signature = signature.sign(
            request.method.value,
            request.base_url,
            signed_params,
            self.credentials.api_secret_key,
            self.credentials.access_token_secret,
        )
        oauth_params.append(("oauth_signature", oauth_signature))
        return "OAuth " + ", ".join(
            f'{signature.url_encode(k)}="{signature.url_encode(v)}"' for k, v in sorted(oauth_params)
        )

    def sign(self, request: ApiRequest) -> ApiRequest:
        """Returns a copy of `request` carrying the Authorization header."""
        value = self.authorization_header(request)
        logger.debug(f"Signed {request.method.value} {request.base_url}")
        return request.with_header(AUTHORIZATION_HEADER, value)
