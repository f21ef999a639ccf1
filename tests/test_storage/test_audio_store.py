"""Tests for the local audio store."""

import pytest

from src.storage.audio import LocalAudioStore


@pytest.fixture
def store(tmp_path) -> LocalAudioStore:
    return LocalAudioStore(tmp_path / "audio")


class TestLocalAudioStore:
    async def test_save_and_read(self, store) -> None:
        ref = await store.save("owner-1", "call.MP3", b"ID3data")

        assert ref.endswith(".mp3")
        assert await store.read(ref) == b"ID3data"
        assert (store.base_dir / ref).is_file()

    async def test_refs_are_unique_and_grouped_by_owner(self, store) -> None:
        a = await store.save("owner-1", "call.mp3", b"a")
        b = await store.save("owner-1", "call.mp3", b"b")
        c = await store.save("owner-2", "call.mp3", b"c")

        assert a != b
        assert a.split("/")[0] == b.split("/")[0]
        assert a.split("/")[0] != c.split("/")[0]

    async def test_filename_never_reaches_the_path(self, store) -> None:
        ref = await store.save("owner-1", "../../etc/passwd", b"x")

        assert ".." not in ref
        assert "passwd" not in ref

    async def test_odd_suffix_dropped(self, store) -> None:
        ref = await store.save("owner-1", "call.mp3; rm -rf", b"x")
        assert "." not in ref.split("/")[1]

    async def test_delete(self, store) -> None:
        ref = await store.save("owner-1", "call.wav", b"x")

        await store.delete(ref)
        await store.delete(ref)

        with pytest.raises(FileNotFoundError):
            await store.read(ref)

    async def test_ref_outside_store_rejected(self, store) -> None:
        with pytest.raises(ValueError, match="escapes"):
            await store.read("../outside.mp3")
