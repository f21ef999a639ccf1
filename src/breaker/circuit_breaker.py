"""Circuit breaker for wrapping any async callable.

State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

- CLOSED: Calls pass through. Consecutive failures tracked; a success
  resets the count.
- OPEN: Calls rejected with CircuitOpenError without invoking the callable.
  The transition to HALF_OPEN is checked lazily on the next call once
  ``reset_timeout`` has elapsed since the last failure (no timer task).
- HALF_OPEN: Calls admitted as trial calls. ``success_threshold`` consecutive
  successes close the circuit; any failure reopens it.

Usage:
    breaker = CircuitBreaker("transcription", failure_threshold=5, reset_timeout=30.0)
    try:
        result = await breaker.call(transcriber.transcribe, audio, filename)
    except CircuitOpenError:
        # Dependency currently inadmissible
"""

import enum
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, TypeVar

from src.observability.logging import get_logger
from src.observability.metrics import get_metrics

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""

    def __init__(self, name: str, retry_after: float) -> None:
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker {name} is OPEN (retry in {retry_after:.1f}s)"
        )


@dataclass(frozen=True)
class BreakerStats:
    """Read-only snapshot of a breaker's counters."""

    name: str
    state: CircuitState
    failures: int
    successes: int
    last_failure: datetime | None
    last_success: datetime | None
    total_requests: int
    total_failures: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "last_failure": self.last_failure.isoformat() if self.last_failure else None,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
        }


class CircuitBreaker:
    """Wraps async callables for one protected dependency.

    Counters are mutated under a lock so one breaker can be shared by
    concurrent jobs (and threads) targeting the same dependency. The lock
    is never held while the wrapped callable runs.

    Args:
        name: Dependency name, used in logs, errors and metrics.
        failure_threshold: Consecutive failures before opening the circuit.
        reset_timeout: Seconds after the last failure before a trial call is allowed.
        success_threshold: Consecutive half-open successes needed to close.
        clock: Monotonic time source (injectable for tests).
        excluded: Exception types that pass through without counting as
            failures (the dependency answered; the caller was wrong).
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
        excluded: tuple[type[Exception], ...] = (),
    ) -> None:
        if failure_threshold < 1 or success_threshold < 1:
            raise ValueError("Breaker thresholds must be at least 1")
        if reset_timeout < 0:
            raise ValueError("reset_timeout must be non-negative")

        self._name = name
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._success_threshold = success_threshold
        self._clock = clock
        self._excluded = excluded
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._last_failure_at: float | None = None
        self._last_failure: datetime | None = None
        self._last_success: datetime | None = None
        self._total_requests = 0
        self._total_failures = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current circuit state (no lazy transition applied)."""
        return self._state

    async def call(
        self,
        fn: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute an async function through the circuit breaker.

        Args:
            fn: Async callable to execute.
            *args: Positional arguments for fn.
            **kwargs: Keyword arguments for fn.

        Returns:
            Result from fn.

        Raises:
            CircuitOpenError: If the circuit is open and the reset timeout
                has not elapsed. fn is not invoked.
            Exception: Whatever fn raised, unchanged.
        """
        with self._lock:
            self._total_requests += 1
            if self._state == CircuitState.OPEN:
                remaining = self._remaining_cooldown()
                if remaining > 0:
                    get_metrics().breaker_rejections.labels(dependency=self._name).inc()
                    raise CircuitOpenError(self._name, remaining)
                self._transition(CircuitState.HALF_OPEN, reason="reset timeout elapsed")
                self._successes = 0

        try:
            result = await fn(*args, **kwargs)
        except self._excluded:
            self._record_success()
            raise
        except Exception as e:
            self._record_failure(e)
            raise

        self._record_success()
        return result

    def is_available(self) -> bool:
        """True when a call made now would be admitted."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            return self._remaining_cooldown() <= 0

    def stats(self) -> BreakerStats:
        with self._lock:
            return BreakerStats(
                name=self._name,
                state=self._state,
                failures=self._failures,
                successes=self._successes,
                last_failure=self._last_failure,
                last_success=self._last_success,
                total_requests=self._total_requests,
                total_failures=self._total_failures,
            )

    def reset(self) -> None:
        """Force the breaker back to CLOSED with zeroed counters."""
        with self._lock:
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED, reason="manual reset")
            self._failures = 0
            self._successes = 0
            self._last_failure_at = None

    def _remaining_cooldown(self) -> float:
        if self._last_failure_at is None:
            return 0.0
        return self._reset_timeout - (self._clock() - self._last_failure_at)

    def _record_success(self) -> None:
        with self._lock:
            self._last_success = datetime.now(timezone.utc)
            if self._state == CircuitState.HALF_OPEN:
                self._successes += 1
                if self._successes >= self._success_threshold:
                    self._transition(
                        CircuitState.CLOSED,
                        reason=f"{self._successes} consecutive trial successes",
                    )
                    self._failures = 0
                    self._successes = 0
            else:
                self._failures = 0

    def _record_failure(self, error: Exception) -> None:
        with self._lock:
            self._failures += 1
            self._total_failures += 1
            self._last_failure_at = self._clock()
            self._last_failure = datetime.now(timezone.utc)

            logger.warning(
                "Dependency call failed",
                dependency=self._name,
                state=self._state.value,
                failures=self._failures,
                error_type=type(error).__name__,
                error=str(error),
            )

            if self._state == CircuitState.HALF_OPEN:
                self._transition(
                    CircuitState.OPEN,
                    reason="trial call failed",
                    error_type=type(error).__name__,
                )
                self._successes = 0
            elif (
                self._state == CircuitState.CLOSED
                and self._failures >= self._failure_threshold
            ):
                self._transition(
                    CircuitState.OPEN,
                    reason=f"{self._failures} consecutive failures",
                    error_type=type(error).__name__,
                )

    def _transition(self, new_state: CircuitState, reason: str, **extra: Any) -> None:
        old_state = self._state
        self._state = new_state
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit breaker state change",
            dependency=self._name,
            from_state=old_state.value,
            to_state=new_state.value,
            reason=reason,
            **extra,
        )
        get_metrics().set_breaker_state(self._name, new_state.value)
