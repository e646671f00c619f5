"""Summary: Bearer token issuing and verification.

Importance: Authenticates every API call after Google login.
Alternatives: Server-side sessions stored in SQLite.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt

from proassist.errors import AuthenticationError

ALGORITHM = "HS256"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthClaims:
    """Summary: Identity carried by a verified bearer token."""

    user_id: int
    email: str


@dataclass(frozen=True)
class TokenIssuer:
    """Summary: Signs and verifies HS256 JWTs carrying the user identity.

    Importance: Keeps the API stateless between requests.
    Alternatives: Opaque random tokens looked up in the database.
    """

    secret: str
    expires_days: int = 7
    clock: Callable[[], datetime] = _utc_now

    def issue(self, user_id: int, email: str) -> str:
        expires_at = self.clock() + timedelta(days=self.expires_days)
        payload = {"userId": user_id, "email": email, "exp": expires_at}
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> AuthClaims:
        """Summary: Decode a bearer token and return its claims.

        Importance: Rejects expired, tampered, or malformed tokens.
        Alternatives: Trust client-supplied user IDs.
        """

        try:
            payload: dict[str, Any] = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("Token expirado") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthenticationError("Token inválido") from exc
        user_id = payload.get("userId")
        email = payload.get("email")
        if not isinstance(user_id, int) or not isinstance(email, str):
            raise AuthenticationError("Token inválido")
        return AuthClaims(user_id=user_id, email=email)
