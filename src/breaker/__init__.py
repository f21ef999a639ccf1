"""Per-dependency circuit breakers.

Usage:
    from src.breaker import BreakerRegistry

    breakers = BreakerRegistry.from_config()
    result = await breakers.get("transcription").call(fn, *args)
"""

from src.breaker.circuit_breaker import (
    BreakerStats,
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from src.breaker.config import BreakerConfig
from src.breaker.registry import DATABASE, STORAGE, TRANSCRIPTION, BreakerRegistry

__all__ = [
    "DATABASE",
    "STORAGE",
    "TRANSCRIPTION",
    "BreakerConfig",
    "BreakerRegistry",
    "BreakerStats",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
]
