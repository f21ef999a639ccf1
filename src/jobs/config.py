"""Configuration for job intake and processing.

Settings can be overridden via JOBS_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_TYPES = (
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
)


class JobsConfig(BaseSettings):
    """Upload limits, stage timeouts and worker concurrency."""

    model_config = SettingsConfigDict(
        env_prefix="JOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upload validation
    max_upload_bytes: int = Field(
        default=100 * 1024 * 1024,
        ge=1,
        description="Largest accepted recording in bytes",
    )
    allowed_content_types: tuple[str, ...] = Field(
        default=DEFAULT_ALLOWED_TYPES,
        description="Accepted audio media types",
    )

    # Stage timeouts
    transcription_timeout_seconds: float = Field(
        default=300.0, ge=1.0, le=3600.0,
        description="Ceiling for one transcription call",
    )
    persistence_timeout_seconds: float = Field(
        default=10.0, ge=0.1, le=300.0,
        description="Ceiling for one database write or read",
    )
    storage_timeout_seconds: float = Field(
        default=30.0, ge=0.1, le=600.0,
        description="Ceiling for reading or writing stored audio",
    )

    # Processing
    max_concurrent_jobs: int = Field(default=4, ge=1, le=64)
    min_transcript_entries: int = Field(
        default=2, ge=1,
        description="Shorter transcripts fail as insufficient_data instead of being scored",
    )
    default_scenario_type: str = "cold_call"
    resume_on_startup: bool = Field(
        default=True,
        description="Reschedule non-terminal jobs when the service starts",
    )

    # Audio storage
    audio_dir: str = Field(default="data/audio", description="Directory for uploaded recordings")
