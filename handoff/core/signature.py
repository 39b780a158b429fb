"""
Signed callback tokens and platform webhook signatures.

A callback token is "<expires_at>.<mac>" where mac is the unpadded base64url
HMAC-SHA256 of "<payload>|<expires_at>" under the shared secret. Tokens are
stateless: they are bound to one payload (the conversation session id) and
expire after a fixed window. They are not tracked, so a token may be presented
more than once until it expires.
"""

from __future__ import annotations

import base64
import time
from typing import Callable, Mapping, Optional

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from handoff.exceptions import AuthenticationFailure

TOKEN_SEPARATOR = "."
DEFAULT_TTL_SECONDS = 900

Clock = Callable[[], float]


def _mac(key: bytes, message: bytes, algorithm: hashes.HashAlgorithm) -> bytes:
    h = hmac.HMAC(key, algorithm)
    h.update(message)
    return h.finalize()


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


class SignatureCodec:
    """Mint and verify URL-safe, time-bounded callback tokens."""

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ) -> None:
        if not secret:
            raise AuthenticationFailure("Callback signing secret is not configured")
        self._key = secret.encode("utf-8")
        self._ttl_seconds = ttl_seconds
        self._clock = clock or time.time

    def sign(self, payload: str, expires_at: Optional[int] = None) -> str:
        if expires_at is None:
            expires_at = int(self._clock()) + self._ttl_seconds
        message = f"{payload}|{expires_at}".encode("utf-8")
        signature = _b64url(_mac(self._key, message, hashes.SHA256()))
        return f"{expires_at}{TOKEN_SEPARATOR}{signature}"

    def verify(self, token: Optional[str], payload: str) -> bool:
        """True only for an unexpired token minted for exactly this payload."""
        if not token or TOKEN_SEPARATOR not in token:
            return False
        expires_part, _, _ = token.partition(TOKEN_SEPARATOR)
        if not (expires_part.isascii() and expires_part.isdigit()):
            return False
        expires_at = int(expires_part)
        if expires_at < int(self._clock()):
            return False
        expected = self.sign(payload, expires_at=expires_at)
        # Compare whole strings: base64 decoding would ignore trailing pad bits
        return constant_time.bytes_eq(expected.encode("utf-8"), token.encode("utf-8"))


def sign(secret: str, payload: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    return SignatureCodec(secret, ttl_seconds).sign(payload)


def verify(
    secret: str, token: Optional[str], payload: str, ttl_seconds: int = DEFAULT_TTL_SECONDS
) -> bool:
    return SignatureCodec(secret, ttl_seconds).verify(token, payload)


def compute_platform_signature(
    auth_token: str, url: str, params: Optional[Mapping[str, object]] = None
) -> str:
    """
    Signature the platform sends in X-Twilio-Signature.

    base64(HMAC-SHA1(auth_token, url + concatenated sorted key/value pairs)).
    List values contribute one pair per item.
    """
    data = url
    for key in sorted(params or {}):
        value = (params or {})[key]
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            data += f"{key}{item}"
    digest = _mac(auth_token.encode("utf-8"), data.encode("utf-8"), hashes.SHA1())
    return base64.b64encode(digest).decode("ascii")


def verify_platform_signature(
    auth_token: str,
    url: str,
    params: Optional[Mapping[str, object]],
    signature: Optional[str],
) -> bool:
    if not auth_token or not signature:
        return False
    expected = compute_platform_signature(auth_token, url, params)
    return constant_time.bytes_eq(expected.encode("utf-8"), signature.encode("utf-8"))
