"""Deadline and backoff primitives for build-info polling.

Key Components:
    Backoff: Exponential delays with a cap (1s, 2s, 4s, 5s, 5s, ...)
    Deadline: Fixed time budget observed by sleeps and HTTP timeouts

Clock and sleep functions are injectable so tests run without real delays.

Example:
    >>> deadline = Deadline(RECONCILE_TIMEOUT_SECONDS)
    >>> for delay in Backoff().delays():
    ...     if probe():
    ...         break
    ...     deadline.sleep(delay)  # raises ReconcileTimeoutError once spent
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from artifactory_build_info.errors import ReconcileTimeoutError

INITIAL_BACKOFF_SECONDS = 1.0
"""Delay after the first failed probe."""

BACKOFF_MULTIPLIER = 2.0
"""Growth factor between consecutive delays."""

MAX_BACKOFF_SECONDS = 5.0
"""Upper bound for a single delay."""

RECONCILE_TIMEOUT_SECONDS = 30.0
"""Time budget for the whole reconciliation, from its start."""


@dataclass(frozen=True)
class Backoff:
    """Exponential backoff schedule.

    Attributes:
        initial: First delay in seconds.
        multiplier: Factor applied after each delay.
        cap: Maximum delay in seconds.
    """

    initial: float = INITIAL_BACKOFF_SECONDS
    multiplier: float = BACKOFF_MULTIPLIER
    cap: float = MAX_BACKOFF_SECONDS

    def delays(self) -> Iterator[float]:
        """Yield delays forever: ``min(initial * multiplier**n, cap)``."""
        delay = min(self.initial, self.cap)
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.cap)


class Deadline:
    """A time budget starting at construction.

    Attributes:
        timeout: Budget in seconds.
    """

    def __init__(
        self,
        timeout: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self._expires_at = clock() + timeout

    def remaining(self) -> float:
        """Return seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        """Return True once the budget is spent."""
        return self.remaining() <= 0.0

    def check(self) -> None:
        """Raise if the budget is spent.

        Raises:
            ReconcileTimeoutError: If the deadline has passed.
        """
        if self.expired:
            raise ReconcileTimeoutError(self.timeout)

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, cut short at the deadline.

        Raises:
            ReconcileTimeoutError: If the deadline has passed, before or
                after sleeping.
        """
        self.check()
        self._sleep(min(seconds, self.remaining()))
        self.check()

    def timeout_for(self, ceiling: float) -> float:
        """Return a request timeout bounded by the remaining budget.

        Raises:
            ReconcileTimeoutError: If the deadline has passed.
        """
        self.check()
        return min(ceiling, self.remaining())


__all__ = [
    "BACKOFF_MULTIPLIER",
    "INITIAL_BACKOFF_SECONDS",
    "MAX_BACKOFF_SECONDS",
    "RECONCILE_TIMEOUT_SECONDS",
    "Backoff",
    "Deadline",
]
