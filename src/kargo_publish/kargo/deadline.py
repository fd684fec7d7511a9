"""Shared deadline for the freight and promotion waits.

One Deadline is created per run and handed to both the Freight Locator and
the Promotion Watcher, so a slow freight materialization directly shrinks
the time left for promotion.
"""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class Deadline:
    """A fixed instant on a monotonic clock.

    Args:
        timeout_seconds: Budget measured from creation.
        clock: Monotonic time source in seconds (injectable for tests).

    Example:
        >>> deadline = Deadline(300)
        >>> deadline.expired()
        False
    """

    def __init__(self, timeout_seconds: float, clock: Clock = time.monotonic) -> None:
        if timeout_seconds < 0:
            raise ValueError(f"timeout_seconds must be >= 0, got {timeout_seconds}")
        self._clock = clock
        self.timeout_seconds = float(timeout_seconds)
        self.started_at = clock()
        self.expires_at = self.started_at + self.timeout_seconds

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def elapsed(self) -> float:
        """Seconds since the deadline was created."""
        return self._clock() - self.started_at

    def sleep(self, interval: float, sleeper: Sleeper = time.sleep) -> None:
        """Sleep for ``interval`` or until expiry, whichever comes first."""
        delay = min(interval, self.remaining())
        if delay > 0:
            sleeper(delay)

    def __repr__(self) -> str:
        return (
            f"Deadline(timeout_seconds={self.timeout_seconds}, "
            f"remaining={self.remaining():.1f})"
        )


__all__ = ["Clock", "Deadline", "Sleeper"]
