"""Local filesystem store for uploaded call recordings.

Files are addressed by an opaque ``audio_ref`` (a relative path); callers
never build paths themselves. Blocking file I/O runs in a worker thread.
"""

import asyncio
import re
import uuid
from pathlib import Path

from src.observability.logging import get_logger

logger = get_logger(__name__)

_SAFE_SUFFIX = re.compile(r"^\.[a-z0-9]{1,5}$")


class LocalAudioStore:
    """Save, read and delete recordings under a base directory."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir).resolve()

    @property
    def base_dir(self) -> Path:
        return self._base

    async def save(self, owner_id: str, filename: str, data: bytes) -> str:
        """Store ``data`` and return its audio_ref."""
        suffix = Path(filename).suffix.lower()
        if not _SAFE_SUFFIX.match(suffix):
            suffix = ""
        owner_dir = uuid.uuid5(uuid.NAMESPACE_URL, owner_id).hex
        ref = f"{owner_dir}/{uuid.uuid4().hex}{suffix}"
        await asyncio.to_thread(self._write, self._path(ref), data)
        logger.debug("Audio stored", audio_ref=ref, size_bytes=len(data))
        return ref

    async def read(self, audio_ref: str) -> bytes:
        return await asyncio.to_thread(self._path(audio_ref).read_bytes)

    async def delete(self, audio_ref: str) -> None:
        await asyncio.to_thread(self._path(audio_ref).unlink, missing_ok=True)

    def _path(self, audio_ref: str) -> Path:
        path = (self._base / audio_ref).resolve()
        if not path.is_relative_to(self._base):
            raise ValueError(f"audio_ref escapes the store: {audio_ref!r}")
        return path

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
