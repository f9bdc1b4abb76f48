"""Request-scoped deadline shared by every outbound call of one request."""

import time
from collections.abc import Callable


class Deadline:
    """A fixed point in time after which a request must give up."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def clamp(self, timeout: float | None) -> float:
        """Per-call timeout that never outlives the deadline."""
        remaining = self.remaining()
        if timeout is None:
            return remaining
        return min(timeout, remaining)
