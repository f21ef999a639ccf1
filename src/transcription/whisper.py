"""Whisper transcription over the OpenAI-compatible HTTP API.

Whisper returns timed segments without speaker labels. Speakers are
inferred from silence: a pause longer than ``speaker_pause_seconds``
between segments flips the speaker, starting with the salesperson
(``user``). Adjacent segments from the same speaker are merged.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx

from src.observability.logging import get_logger
from src.scoring.schemas import TranscriptEntry
from src.scoring.text_metrics import round_half_up
from src.transcription.base import Transcriber, TranscriptionError, TranscriptionResult
from src.transcription.config import TranscriptionConfig

logger = get_logger(__name__)

_EXTENSION_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
}


def content_type_for(filename: str) -> str:
    return _EXTENSION_TYPES.get(Path(filename).suffix.lower(), "audio/mpeg")


def segments_to_entries(
    segments: Sequence[dict[str, Any]],
    pause_seconds: float = 1.5,
) -> list[TranscriptEntry]:
    """Attribute Whisper segments to alternating speakers and merge runs."""
    merged: list[TranscriptEntry] = []
    speaker = "user"
    last_end = 0.0

    for segment in segments:
        text = str(segment.get("text", "")).strip()
        start = float(segment.get("start", 0.0))
        if merged and start - last_end > pause_seconds:
            speaker = "assistant" if speaker == "user" else "user"
        last_end = float(segment.get("end", start))

        if merged and merged[-1].role == speaker:
            prev = merged[-1]
            merged[-1] = prev.model_copy(update={"content": f"{prev.content} {text}"})
        else:
            merged.append(
                TranscriptEntry(
                    role=speaker,
                    content=text,
                    timestamp=int(round_half_up(start * 1000)),
                )
            )
    return merged


class WhisperTranscriber(Transcriber):
    """Transcriber backed by ``POST {base_url}/audio/transcriptions``."""

    name = "whisper"

    def __init__(self, config: TranscriptionConfig | None = None) -> None:
        self._config = config or TranscriptionConfig()

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> TranscriptionResult:
        """
        Transcribe a recording.

        Raises:
            TranscriptionError: Missing API key or malformed response.
            httpx.HTTPError: Transport failure or non-2xx status.
        """
        api_key = self._config.api_key
        if api_key is None:
            raise TranscriptionError("TRANSCRIPTION_API_KEY is not configured")

        files = {"file": (filename, audio, content_type or content_type_for(filename))}
        data = {
            "model": self._config.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
        }
        url = f"{self._config.base_url.rstrip('/')}/audio/transcriptions"

        async with httpx.AsyncClient(timeout=self._config.request_timeout) as client:
            response = await client.post(
                url,
                headers={"Authorization": f"Bearer {api_key.get_secret_value()}"},
                data=data,
                files=files,
            )
            response.raise_for_status()
            payload = response.json()

        if not isinstance(payload, dict) or "duration" not in payload:
            raise TranscriptionError("Whisper response missing duration")

        entries = segments_to_entries(
            payload.get("segments") or [],
            pause_seconds=self._config.speaker_pause_seconds,
        )
        duration = round_half_up(float(payload["duration"]))

        logger.info(
            "Audio transcribed",
            filename=filename,
            size_bytes=len(audio),
            duration_seconds=duration,
            entries=len(entries),
        )
        return TranscriptionResult(
            entries=tuple(entries),
            duration_seconds=duration,
            text=str(payload.get("text", "")),
        )
