"""Opaque identifiers for accounts and verification tokens."""

import logging
import uuid

from credential_service.exceptions import EntropyError

logger = logging.getLogger(__name__)


class TokenGenerator:
    """Generates random UUID4 identifiers."""

    @staticmethod
    def new_id() -> str:
        """Return a new random identifier (122 bits of randomness)."""
        try:
            return str(uuid.uuid4())
        except (OSError, NotImplementedError) as e:
            logger.error(f"Random source unavailable: {e}")
            raise EntropyError("Random source unavailable") from e
