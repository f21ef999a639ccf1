"""Storage layer: PostgreSQL connection pool and recorded audio."""

from src.storage.audio import LocalAudioStore
from src.storage.database import Database

__all__ = ["Database", "LocalAudioStore"]
