"""Summary: Encoding utilities for provider OAuth credentials at rest.

Importance: Keeps access and refresh tokens obscured inside the SQLite file.
Alternatives: Use a dedicated secrets manager or the cryptography package.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets

logger = logging.getLogger(__name__)

_NONCE_BYTES = 12
_PREFIX = "v1:"


class TokenCodec:
    """Summary: Reversible token encoder keyed by a deployment secret.

    Importance: Provides a lightweight protection layer for stored OAuth tokens.
    Alternatives: Use authenticated encryption with managed keys.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            logger.warning(
                "No token secret configured; stored OAuth tokens use a built-in key. "
                "Set PROASSIST_TOKEN_SECRET in production."
            )
        self._secret = (secret or "proassist").encode("utf-8")

    def encode(self, plaintext: str) -> str:
        """Summary: Encode plaintext with a fresh random nonce.

        Importance: Avoids storing raw tokens and identical ciphertexts for equal tokens.
        Alternatives: Store tokens in plaintext.
        """

        raw = plaintext.encode("utf-8")
        nonce = secrets.token_bytes(_NONCE_BYTES)
        key = _keystream(self._secret, nonce, len(raw))
        masked = bytes(b ^ k for b, k in zip(raw, key))
        return _PREFIX + base64.urlsafe_b64encode(nonce + masked).decode("ascii")

    def decode(self, payload: str) -> str:
        """Summary: Decode a value produced by encode.

        Importance: Allows using stored tokens for provider calls.
        Alternatives: Require re-authentication whenever a token is needed.
        """

        if not payload.startswith(_PREFIX):
            raise ValueError("Unsupported token encoding")
        blob = base64.urlsafe_b64decode(payload[len(_PREFIX):].encode("ascii"))
        nonce, masked = blob[:_NONCE_BYTES], blob[_NONCE_BYTES:]
        key = _keystream(self._secret, nonce, len(masked))
        return bytes(b ^ k for b, k in zip(masked, key)).decode("utf-8")

    def encode_optional(self, plaintext: str | None) -> str | None:
        return self.encode(plaintext) if plaintext else None

    def decode_optional(self, payload: str | None) -> str | None:
        return self.decode(payload) if payload else None


def _keystream(secret: bytes, nonce: bytes, length: int) -> bytes:
    output = b""
    counter = 0
    while len(output) < length:
        block = nonce + counter.to_bytes(4, "big")
        output += hmac.new(secret, block, hashlib.sha256).digest()
        counter += 1
    return output[:length]
