"""Registry mapping dependency names to their circuit breakers.

Built once at startup and passed to every call site that needs a breaker;
nothing reaches for a module-level breaker instance.
"""

import threading
import time
from typing import Callable

from src.breaker.circuit_breaker import BreakerStats, CircuitBreaker
from src.breaker.config import BreakerConfig

TRANSCRIPTION = "transcription"
DATABASE = "database"
STORAGE = "storage"


class BreakerRegistry:
    """Owns one independent CircuitBreaker per protected dependency."""

    def __init__(
        self,
        config: BreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        excluded: tuple[type[Exception], ...] = (),
    ) -> None:
        self._config = config or BreakerConfig()
        self._clock = clock
        self._excluded = excluded
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: BreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        excluded: tuple[type[Exception], ...] = (),
    ) -> "BreakerRegistry":
        """Create a registry with the known dependencies pre-registered."""
        registry = cls(config, clock=clock, excluded=excluded)
        for name in (TRANSCRIPTION, DATABASE, STORAGE):
            registry.get(name)
        return registry

    def get(self, name: str) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                failures, reset_timeout, successes = self._config.thresholds_for(name)
                breaker = CircuitBreaker(
                    name,
                    failure_threshold=failures,
                    reset_timeout=reset_timeout,
                    success_threshold=successes,
                    clock=self._clock,
                    excluded=self._excluded,
                )
                self._breakers[name] = breaker
            return breaker

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._breakers)

    def all_stats(self) -> dict[str, BreakerStats]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.stats() for b in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
