"""
Exponential backoff for the status polling fallback.

Delays are min(base * multiplier^attempt, max_delay) with optional jitter,
over a fixed attempt budget. With the defaults and no jitter the schedule
is 2s, 4s, 8s.
"""

import random


class ExponentialBackoff:
    """
    Exponential backoff with a bounded number of attempts.

    Usage:
        backoff = ExponentialBackoff(base_delay=2.0, max_attempts=3)
        while not backoff.exhausted:
            await asyncio.sleep(backoff.next_delay())
            if await check():
                break
    """

    def __init__(
        self,
        base_delay: float = 2.0,
        max_delay: float = 8.0,
        multiplier: float = 2.0,
        max_attempts: int = 3,
        jitter_range: float = 0.0,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts
        self.jitter_range = jitter_range
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Attempts consumed so far."""
        return self._attempt

    @property
    def exhausted(self) -> bool:
        return self._attempt >= self.max_attempts

    def next_delay(self) -> float:
        """Return the next delay and consume one attempt."""
        if self.exhausted:
            raise RuntimeError("Backoff attempt budget exhausted")
        delay = min(
            self.base_delay * (self.multiplier ** self._attempt),
            self.max_delay,
        )
        if self.jitter_range:
            delay = max(0.0, delay + delay * random.uniform(-self.jitter_range, self.jitter_range))
        self._attempt += 1
        return delay

    def total_budget(self) -> float:
        """Sum of all un-jittered delays (the client's patience budget)."""
        return sum(
            min(self.base_delay * (self.multiplier ** n), self.max_delay)
            for n in range(self.max_attempts)
        )

    def reset(self) -> None:
        self._attempt = 0
