"""Request-scoped time budget."""

import time
from collections.abc import Callable

from credential_service.exceptions import OperationTimeoutError


class Deadline:
    """Monotonic time budget shared by the steps of one service call."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, operation: str) -> None:
        """Raise OperationTimeoutError if the budget is spent."""
        if self.expired:
            raise OperationTimeoutError(operation)
