"""Tests for OAuth 1.0a request signing."""

import base64
import hashlib
import hmac

from nutrition_aggregator.adapters.oauth_signer import HmacSha1Signer

URL = "https://platform.fatsecret.com/rest/server.api"


def _signer() -> HmacSha1Signer:
    return HmacSha1Signer(
        consumer_key="consumer",
        consumer_secret="s3cret",
        nonce_factory=lambda: "abc123",
        timestamp_factory=lambda: "1700000000",
    )


def test_oauth_params_use_injected_nonce_and_timestamp() -> None:
    params = _signer().oauth_params()

    assert params == {
        "oauth_consumer_key": "consumer",
        "oauth_nonce": "abc123",
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": "1700000000",
        "oauth_version": "1.0",
    }


def test_signature_matches_manual_computation() -> None:
    params = {"method": "foods.search", "search_expression": "peanut butter"}

    signature = _signer().signature("post", URL, params)

    normalized = "method%3Dfoods.search%26search_expression%3Dpeanut%2520butter"
    base_string = f"POST&{URL.replace(':', '%3A').replace('/', '%2F')}&{normalized}"
    expected = base64.b64encode(
        hmac.new(b"s3cret&", base_string.encode(), hashlib.sha1).digest()
    ).decode()
    assert signature == expected


def test_sign_builds_sorted_authorization_header() -> None:
    headers = _signer().sign("POST", URL, {"method": "food.get.v2", "food_id": "4384"})

    header = headers["Authorization"]
    assert header.startswith("OAuth ")
    fields = [part.split("=", 1)[0] for part in header.removeprefix("OAuth ").split(", ")]
    assert fields == sorted(fields)
    assert 'oauth_consumer_key="consumer"' in header
    assert 'oauth_nonce="abc123"' in header
    assert "oauth_signature=" in header


def test_signature_changes_with_parameters() -> None:
    signer = _signer()

    first = signer.signature("POST", URL, {"food_id": "1"})
    second = signer.signature("POST", URL, {"food_id": "2"})

    assert first != second
