"""NetSuite Token-Based Authentication.

Builds the OAuth 1.0a style Authorization header NetSuite's REST record API
expects for token-based authentication (TBA). Every request is signed on its
own: a fresh timestamp and nonce go into each signature.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from urllib.parse import quote


SIGNATURE_METHOD = "HMAC-SHA256"
OAUTH_VERSION = "1.0"


@dataclass(frozen=True)
class NetSuiteCredentials:
    """Token-based authentication credentials for one NetSuite account.

    Attributes:
        consumer_key: Integration record consumer key
        consumer_secret: Integration record consumer secret
        token: Access token id
        token_secret: Access token secret
        realm: Account id as used in the header realm (e.g. "1234567_SB1")
    """
    consumer_key: str
    consumer_secret: str
    token: str
    token_secret: str
    realm: str

    def __repr__(self) -> str:
        return f"NetSuiteCredentials(realm={self.realm!r}, consumer_key={self.consumer_key[:6]!r}...)"


def percent_encode(value) -> str:
    """RFC 3986 percent-encoding (only unreserved characters left as-is)."""
    return quote(str(value), safe="")


def _default_nonce() -> str:
    return secrets.token_hex(16)


def _default_timestamp() -> int:
    return int(time.time())


def signature_base_string(method: str, url: str, params: Dict[str, str]) -> str:
    """Build METHOD&encode(url)&encode(sorted k=v pairs joined with &)."""
    pairs = [
        f"{percent_encode(key)}={percent_encode(params[key])}"
        for key in sorted(params)
    ]
    return "&".join([
        method.upper(),
        percent_encode(url),
        percent_encode("&".join(pairs)),
    ])


def sign(base_string: str, credentials: NetSuiteCredentials) -> str:
    """Base64 HMAC-SHA256 of the base string keyed by the two secrets."""
    signing_key = f"{percent_encode(credentials.consumer_secret)}&{percent_encode(credentials.token_secret)}"
    digest = hmac.new(
        signing_key.encode("utf-8"),
        base_string.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def build_oauth_header(
    url: str,
    method: str,
    credentials: NetSuiteCredentials,
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None,
) -> str:
    """Build the Authorization header value for a single request.

    Args:
        url: Full request URL (no query string)
        method: HTTP method
        credentials: Account credentials
        timestamp: Override for the oauth_timestamp (seconds since epoch)
        nonce: Override for the oauth_nonce

    Returns:
        Header value like 'OAuth realm="...", oauth_consumer_key="...", ...'
    """
    params = {
        "oauth_consumer_key": credentials.consumer_key,
        "oauth_token": credentials.token,
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_timestamp": str(timestamp if timestamp is not None else _default_timestamp()),
        "oauth_nonce": nonce if nonce is not None else _default_nonce(),
        "oauth_version": OAUTH_VERSION,
    }

    base_string = signature_base_string(method, url, params)
    params["oauth_signature"] = sign(base_string, credentials)

    parts = [f'OAuth realm="{credentials.realm}"']
    for key, value in params.items():
        parts.append(f'{percent_encode(key)}="{percent_encode(value)}"')
    return ", ".join(parts)


class RequestSigner:
    """Produces per-request Authorization headers.

    The clock and nonce source are injectable so signatures can be
    reproduced in tests.

    Usage:
        signer = RequestSigner(credentials)
        headers = {"Authorization": signer.authorization(url, "GET")}
    """

    def __init__(
        self,
        credentials: NetSuiteCredentials,
        clock: Callable[[], int] = _default_timestamp,
        nonce_factory: Callable[[], str] = _default_nonce,
    ):
        self.credentials = credentials
        self._clock = clock
        self._nonce_factory = nonce_factory

    def authorization(self, url: str, method: str) -> str:
        return build_oauth_header(
            url,
            method,
            self.credentials,
            timestamp=self._clock(),
            nonce=self._nonce_factory(),
        )
