"""Client configuration (WATCHER_* environment variables)."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class WatcherConfig(BaseSettings):
    """API location plus push/poll timing for status watching."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(default="http://localhost:8000")
    api_key: SecretStr | None = None
    request_timeout: float = Field(default=10.0, ge=0.1, le=300.0)

    idle_timeout: float = Field(
        default=45.0, ge=0.1, le=3600.0,
        description="Seconds without a push event before falling back to polling",
    )
    poll_base_delay: float = Field(default=2.0, ge=0.0, le=300.0)
    poll_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    poll_max_delay: float = Field(default=8.0, ge=0.0, le=3600.0)
    poll_max_attempts: int = Field(default=3, ge=1, le=100)
