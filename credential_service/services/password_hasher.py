"""One-way password hashing with bcrypt."""

import logging

import bcrypt

from credential_service.exceptions import HashingError

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, cost-parameterized password hashing."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds
        # Same cost as real hashes so the unknown-email path takes as long as a wrong password
        self._dummy_hash = self.hash("dummy-password-for-timing")

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt."""
        encoded = password.encode("utf-8")
        if not encoded:
            raise HashingError("Password must not be empty")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            raise HashingError(f"Password exceeds {BCRYPT_MAX_PASSWORD_BYTES} bytes")

        try:
            salt = bcrypt.gensalt(rounds=self._rounds)
        except (OSError, NotImplementedError) as e:
            raise HashingError("Unable to generate salt") from e
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Verify a password against its hash.

        Returns False on mismatch. Raises HashingError only if the stored
        hash is not a bcrypt hash.
        """
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            raise HashingError("Stored password hash is malformed") from e

    def verify_dummy(self, password: str) -> None:
        """Spend the cost of one verification without a real account."""
        self.verify(password, self._dummy_hash)
