"""OAuth 1.0a HMAC-SHA1 signature generation.

Pure functions: no state, no I/O. The signature must match what the
server computes byte for byte, so every step here is canonical:
parameters are percent-encoded strictly, sorted, joined, and folded into
the signature base string before hashing.

See https://developer.twitter.com/en/docs/authentication/oauth-1-0a/creating-a-signature
"""

import base64
import hashlib
import hmac
import logging
import secrets
import string
import time
from typing import Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from chirpkit.domain.exceptions import ConfigurationError
from chirpkit.domain.models.common import Signature

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"
HMAC_SHA1 = "sha1"
SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"
NONCE_ALPHABET = string.digits + string.ascii_letters
DEFAULT_NONCE_LENGTH = 32

Params = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def url_encode(value: Optional[str]) -> str:
    """Percent-encodes `value`, leaving only ALPHA / DIGIT / '-' '.' '_' as is.

    `+`, `*`, `~` and `/` are all escaped, and spaces become `%20`.
    """
    if value is None:
        return ""
    return quote(str(value), safe="", encoding=DEFAULT_ENCODING).replace("~", "%7E")


def _pairs(params: Params) -> Iterable[Tuple[str, str]]:
    if isinstance(params, Mapping):
        return params.items()
    return params


def normalize_parameters(params: Params) -> str:
    """Encodes, sorts and joins parameters as `k=v&k=v`.

    Sorting is byte-wise on the encoded key, then the encoded value, so
    input order never changes the result.
    """
    encoded = sorted((url_encode(k), url_encode(v)) for k, v in _pairs(params))
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(method: str, base_url: str, params: Params) -> str:
    return "&".join([
        method.upper(),
        url_encode(base_url),
        url_encode(normalize_parameters(params)),
    ])


def signing_key(consumer_secret: str, token_secret: Optional[str] = None) -> str:
    """Both secrets are encoded exactly once; a missing token secret leaves the key ending in '&'."""
    return f"{url_encode(consumer_secret)}&{url_encode(token_secret or '')}"


def _hmac_digest(key: bytes, data: bytes) -> bytes:
    try:
        return hmac.new(key, data, HMAC_SHA1).digest()
    except ValueError as e:
        # Raised when the runtime (e.g. a FIPS build) refuses the digest
        logger.error(f"Unsupported signing algorithm {SIGNATURE_METHOD}: {e}")
        raise ConfigurationError(f"Unsupported signing algorithm: {SIGNATURE_METHOD}") from e


def sign(
    method: str,
    base_url: str,
    params: Params,
    consumer_secret: str,
    token_secret: Optional[str] = None,
) -> Signature:
    """Generates the base64 HMAC-SHA1 signature of a request.

    Args:
        method: HTTP method, any case.
        base_url: Scheme, host and path without query string.
        params: OAuth metadata, query parameters and form body parameters.
        consumer_secret: API secret key of the application.
        token_secret: Access token secret, if a user context is signed.

    Returns:
        The signature, base64 encoded without line wrapping.

    Raises:
        ConfigurationError: If HMAC-SHA1 is unavailable in this runtime.
    """
    base_string = signature_base_string(method, base_url, params)
    key = signing_key(consumer_secret, token_secret)
    digest = _hmac_digest(key.encode(DEFAULT_ENCODING), base_string.encode(DEFAULT_ENCODING))
    logger.debug(f"Signature base string: {base_string}")
    return Signature(base64.b64encode(digest).decode("ascii"))


def generate_nonce(length: int = DEFAULT_NONCE_LENGTH) -> str:
    """Random alphanumeric nonce."""
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def generate_timestamp() -> str:
    """Current Unix time in whole seconds."""
    return str(int(time.time()))


def check_algorithm_available() -> None:
    """Fails fast with ConfigurationError if HMAC-SHA1 cannot be computed."""
    try:
        hashlib.new(HMAC_SHA1)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported signing algorithm: {SIGNATURE_METHOD}") from e
