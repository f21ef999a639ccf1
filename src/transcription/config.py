"""Configuration for the speech-to-text collaborator.

Settings can be overridden via TRANSCRIPTION_* environment variables.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TranscriptionConfig(BaseSettings):
    """OpenAI-compatible Whisper endpoint settings.

    Example:
        TRANSCRIPTION_API_KEY=sk-...
        TRANSCRIPTION_BASE_URL=https://api.openai.com/v1
    """

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIPTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_key: SecretStr | None = Field(default=None, description="Whisper API key")
    base_url: str = Field(default="https://api.openai.com/v1")
    model: str = Field(default="whisper-1")
    request_timeout: float = Field(
        default=120.0, ge=1.0, le=600.0,
        description="HTTP timeout for one transcription request",
    )
    speaker_pause_seconds: float = Field(
        default=1.5, ge=0.0, le=30.0,
        description="Silence longer than this is treated as a change of speaker",
    )
