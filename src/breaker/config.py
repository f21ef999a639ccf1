"""Configuration for per-dependency circuit breakers.

Settings can be overridden via BREAKER_* environment variables, e.g.
BREAKER_TRANSCRIPTION_RESET_TIMEOUT=60.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BreakerConfig(BaseSettings):
    """Thresholds for each protected dependency."""

    model_config = SettingsConfigDict(
        env_prefix="BREAKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Speech-to-text API
    transcription_failure_threshold: int = Field(
        default=5, ge=1, le=100,
        description="Consecutive transcription failures before opening",
    )
    transcription_reset_timeout: float = Field(
        default=30.0, ge=0.0, le=3600.0,
        description="Seconds before a trial transcription call is admitted",
    )
    transcription_success_threshold: int = Field(
        default=2, ge=1, le=20,
        description="Half-open successes required to close",
    )

    # Job persistence
    database_failure_threshold: int = Field(default=5, ge=1, le=100)
    database_reset_timeout: float = Field(default=15.0, ge=0.0, le=3600.0)
    database_success_threshold: int = Field(default=3, ge=1, le=20)

    # Anything not listed above
    default_failure_threshold: int = Field(default=5, ge=1, le=100)
    default_reset_timeout: float = Field(default=30.0, ge=0.0, le=3600.0)
    default_success_threshold: int = Field(default=2, ge=1, le=20)

    def thresholds_for(self, name: str) -> tuple[int, float, int]:
        """Return (failure_threshold, reset_timeout, success_threshold) for a dependency."""
        prefix = name if name in ("transcription", "database") else "default"
        return (
            getattr(self, f"{prefix}_failure_threshold"),
            getattr(self, f"{prefix}_reset_timeout"),
            getattr(self, f"{prefix}_success_threshold"),
        )
