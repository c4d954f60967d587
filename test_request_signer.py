"""
Request Signer Tests

Validates the NetSuite token-based authentication header:
1. Base string layout (METHOD&url&sorted params)
2. HMAC-SHA256 signature keyed by both secrets
3. Header rendering (realm first, signature last)
4. Fresh nonce/timestamp on every call
"""

import base64
import hashlib
import hmac
import itertools
from urllib.parse import quote

import pytest

from connectors.netsuite.ns_auth import (
    NetSuiteCredentials,
    RequestSigner,
    build_oauth_header,
    percent_encode,
    sign,
    signature_base_string,
)

URL = "https://1234567-sb1.suitetalk.api.netsuite.com/services/rest/record/v1/salesOrder/42"


@pytest.fixture
def credentials():
    return NetSuiteCredentials(
        consumer_key="consumer key",
        consumer_secret="consumer&secret",
        token="token-id",
        token_secret="token/secret",
        realm="1234567_SB1",
    )


def _parse_header(header: str) -> dict:
    assert header.startswith("OAuth ")
    parts = {}
    for chunk in header[len("OAuth "):].split(", "):
        key, value = chunk.split("=", 1)
        parts[key] = value.strip('"')
    return parts


class TestPercentEncoding:

    def test_unreserved_characters_untouched(self):
        assert percent_encode("abcXYZ019-._~") == "abcXYZ019-._~"

    def test_reserved_characters_encoded(self):
        assert percent_encode("a b&c/d=e+f") == "a%20b%26c%2Fd%3De%2Bf"

    def test_non_string_values(self):
        assert percent_encode(1700000000) == "1700000000"


class TestSignatureBaseString:

    def test_layout(self):
        base = signature_base_string("get", "https://x.test/a b", {"b": "2", "a": "1"})
        method, url, params = base.split("&")
        assert method == "GET"
        assert url == quote("https://x.test/a b", safe="")
        assert params == quote("a=1&b=2", safe="")

    def test_params_sorted_by_key(self):
        base = signature_base_string("POST", URL, {"oauth_version": "1.0", "oauth_consumer_key": "k"})
        assert base.endswith(quote("oauth_consumer_key=k&oauth_version=1.0", safe=""))


class TestBuildOAuthHeader:

    def test_header_fields_and_order(self, credentials):
        header = build_oauth_header(URL, "GET", credentials, timestamp=1700000000, nonce="abc123")
        assert header.startswith('OAuth realm="1234567_SB1", ')

        parts = _parse_header(header)
        keys = list(parts)
        assert keys[0] == "realm"
        assert keys[-1] == "oauth_signature"
        assert parts["oauth_consumer_key"] == "consumer%20key"
        assert parts["oauth_token"] == "token-id"
        assert parts["oauth_signature_method"] == "HMAC-SHA256"
        assert parts["oauth_timestamp"] == "1700000000"
        assert parts["oauth_nonce"] == "abc123"
        assert parts["oauth_version"] == "1.0"
        assert not header.endswith(",")

    def test_signature_matches_independent_hmac(self, credentials):
        header = build_oauth_header(URL, "PATCH", credentials, timestamp=1700000000, nonce="n0nce")
        params = {
            "oauth_consumer_key": credentials.consumer_key,
            "oauth_token": credentials.token,
            "oauth_signature_method": "HMAC-SHA256",
            "oauth_timestamp": "1700000000",
            "oauth_nonce": "n0nce",
            "oauth_version": "1.0",
        }
        joined = "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in sorted(params.items()))
        base = f"PATCH&{quote(URL, safe='')}&{quote(joined, safe='')}"
        key = f"{quote('consumer&secret', safe='')}&{quote('token/secret', safe='')}"
        expected = base64.b64encode(hmac.new(key.encode(), base.encode(), hashlib.sha256).digest()).decode()

        assert _parse_header(header)["oauth_signature"] == quote(expected, safe="")
        assert sign(base, credentials) == expected

    def test_deterministic_for_fixed_nonce_and_timestamp(self, credentials):
        a = build_oauth_header(URL, "GET", credentials, timestamp=1, nonce="same")
        b = build_oauth_header(URL, "GET", credentials, timestamp=1, nonce="same")
        assert a == b

    def test_method_changes_signature(self, credentials):
        get = _parse_header(build_oauth_header(URL, "GET", credentials, timestamp=1, nonce="n"))
        delete = _parse_header(build_oauth_header(URL, "DELETE", credentials, timestamp=1, nonce="n"))
        assert get["oauth_signature"] != delete["oauth_signature"]


class TestRequestSigner:

    def test_every_call_uses_fresh_nonce(self, credentials):
        signer = RequestSigner(credentials)
        first = _parse_header(signer.authorization(URL, "GET"))
        second = _parse_header(signer.authorization(URL, "GET"))
        assert first["oauth_nonce"] != second["oauth_nonce"]
        assert first["oauth_signature"] != second["oauth_signature"]

    def test_injected_clock_and_nonce(self, credentials):
        counter = itertools.count(1)
        signer = RequestSigner(credentials, clock=lambda: 1700000000, nonce_factory=lambda: f"n{next(counter)}")
        header = signer.authorization(URL, "GET")
        assert header == build_oauth_header(URL, "GET", credentials, timestamp=1700000000, nonce="n1")

    def test_credentials_repr_hides_secrets(self, credentials):
        text = repr(credentials)
        assert "consumer&secret" not in text
        assert "token/secret" not in text
