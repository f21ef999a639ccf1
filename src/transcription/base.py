"""Transcription collaborator interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from src.scoring.schemas import TranscriptEntry


@dataclass(frozen=True)
class TranscriptionResult:
    entries: tuple[TranscriptEntry, ...]
    duration_seconds: float
    text: str = ""


class TranscriptionError(Exception):
    """The speech-to-text service returned an unusable response."""


class Transcriber(ABC):
    """Turns recorded audio into speaker-attributed transcript entries.

    Implementations raise on any failure; callers wrap them in a circuit
    breaker and a timeout.
    """

    name: str = "transcriber"

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> TranscriptionResult:
        ...
