"""Signed, short-lived session tokens."""

import logging
from datetime import UTC, datetime, timedelta

import jwt

from credential_service.exceptions import SigningError

logger = logging.getLogger(__name__)


class SessionIssuer:
    """Mints and validates HS256 access tokens for authenticated accounts."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 15,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def issue_token(
        self,
        account_id: str,
        email: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a JWT access token for an account."""
        if not self._secret_key:
            raise SigningError("Signing secret is not configured")

        if expires_delta is None:
            expires_delta = timedelta(minutes=self._expire_minutes)

        now = datetime.now(UTC)
        payload = {
            "sub": account_id,
            "email": email,
            "exp": now + expires_delta,
            "iat": now,
            "type": "access",
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as e:
            raise SigningError(f"Failed to sign token with {self._algorithm}") from e

    def decode_token(self, token: str) -> dict | None:
        """Decode and validate a JWT token."""
        if not self._secret_key:
            return None
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"Invalid token: {e}")
            return None
