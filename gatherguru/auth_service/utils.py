"""
Shared authentication helpers.
Provides token creation and verification for session cookies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

TOKEN_COOKIE_NAME = "token"
TOKEN_SERVICE_KEY = "gatherguru.tokens"
ALGORITHM = "HS256"


class InvalidToken(Exception):
    """Raised for any token that cannot be trusted, whatever the reason."""


@dataclass(frozen=True)
class TokenClaims:
    id: str
    role: str


class TokenService:
    """
    Issues and verifies signed, expiring session tokens.

    Args:
        secret (str): HMAC signing key.
        expiration_minutes (int): Token lifetime.
    """

    def __init__(self, secret: str, expiration_minutes: int = 1440):
        if not secret:
            raise RuntimeError("JWT_SECRET is missing. Set it in .env")
        self._secret = secret
        self.expiration_minutes = expiration_minutes

    @property
    def max_age_seconds(self) -> int:
        return self.expiration_minutes * 60

    # --- JWT CREATION ---
    def issue(self, principal_id: str, role: str) -> str:
        """
        Generate a new JWT for a principal.

        Args:
            principal_id (str): The principal's document id.
            role (str): admin, organizer or user.

        Returns:
            str: Encoded JWT string.
        """
        now = datetime.now(timezone.utc)

        payload = {
            "id": str(principal_id),
            "role": role,
            "exp": now + timedelta(minutes=self.expiration_minutes),
            "iat": now,
        }

        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    # --- JWT VALIDATION ---
    def verify(self, token: str) -> TokenClaims:
        """
        Decode a JWT and return its claims.

        Expiry, signature mismatch and malformed payloads all raise the same
        InvalidToken so callers cannot tell which check failed.

        Raises:
            InvalidToken: If the token is not valid.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require": ["id", "exp", "iat"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidToken() from exc

        principal_id = payload.get("id")
        role = payload.get("role")
        if not isinstance(principal_id, str) or not isinstance(role, str):
            raise InvalidToken()

        return TokenClaims(id=principal_id, role=role)


def get_token_service() -> TokenService:
    return current_app.extensions[TOKEN_SERVICE_KEY]
