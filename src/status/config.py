"""Configuration for job status delivery.

Settings can be overridden via STATUS_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StatusConfig(BaseSettings):
    """Server-side status fan-out and event stream settings."""

    model_config = SettingsConfigDict(
        env_prefix="STATUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    subscriber_queue_size: int = Field(
        default=16, ge=1, le=1024,
        description="Buffered events per subscriber; oldest dropped on overflow",
    )
    max_subscribers_per_job: int = Field(default=32, ge=1, le=1000)
    heartbeat_seconds: float = Field(
        default=15.0, ge=0.1, le=300.0,
        description="Idle interval between SSE heartbeat comments",
    )
    redis_channel: str = Field(default="call_jobs:status")
