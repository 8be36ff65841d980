"""OAuth 1.0a request signing."""

import base64
import hashlib
import hmac
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote


class RequestSigner(Protocol):
    """Produces authentication headers for a request."""

    def sign(self, method: str, url: str, params: Mapping[str, str]) -> dict[str, str]:
        """Return headers that authenticate the request."""


def _encode(value: str) -> str:
    """RFC 3986 percent-encoding as required by OAuth 1.0a."""
    return quote(value, safe="~")


def _nonce() -> str:
    return secrets.token_hex(16)


def _timestamp() -> str:
    return str(int(time.time()))


@dataclass
class HmacSha1Signer(RequestSigner):
    """Two-legged OAuth 1.0a signer using HMAC-SHA1."""

    consumer_key: str
    consumer_secret: str
    nonce_factory: Callable[[], str] = _nonce
    timestamp_factory: Callable[[], str] = _timestamp

    def oauth_params(self) -> dict[str, str]:
        """Return fresh protocol parameters without the signature."""
        return {
            "oauth_consumer_key": self.consumer_key,
            "oauth_nonce": self.nonce_factory(),
            "oauth_signature_method": "HMAC-SHA1",
            "oauth_timestamp": self.timestamp_factory(),
            "oauth_version": "1.0",
        }

    def signature(self, method: str, url: str, params: Mapping[str, str]) -> str:
        """Compute the base64 HMAC-SHA1 signature over the signature base string."""
        normalized = "&".join(
            f"{key}={value}"
            for key, value in sorted(
                (_encode(str(key)), _encode(str(value))) for key, value in params.items()
            )
        )
        base_string = "&".join(
            (method.upper(), _encode(url), _encode(normalized))
        )
        key = f"{_encode(self.consumer_secret)}&"
        digest = hmac.new(key.encode(), base_string.encode(), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")

    def sign(self, method: str, url: str, params: Mapping[str, str]) -> dict[str, str]:
        """Return an ``Authorization`` header covering the request parameters."""
        oauth = self.oauth_params()
        oauth["oauth_signature"] = self.signature(method, url, {**params, **oauth})
        header = ", ".join(
            f'{_encode(key)}="{_encode(value)}"' for key, value in sorted(oauth.items())
        )
        return {"Authorization": f"OAuth {header}"}
