"""Speech-to-text collaborator."""

from src.transcription.base import Transcriber, TranscriptionError, TranscriptionResult
from src.transcription.config import TranscriptionConfig
from src.transcription.whisper import WhisperTranscriber

__all__ = [
    "Transcriber",
    "TranscriptionConfig",
    "TranscriptionError",
    "TranscriptionResult",
    "WhisperTranscriber",
]
