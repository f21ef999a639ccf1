"""Tests for API rate limiting configuration."""

from unittest.mock import patch

from starlette.requests import Request

from src.api.rate_limit import (
    UPLOAD_LIMIT,
    _get_rate_limit_key,
    _storage_uri,
    create_limiter,
    limiter,
)
from src.config.settings import Settings

AUDIO = b"ID3" + b"\x00" * 64


class TestRateLimitKeyExtraction:
    """Tests for rate limit key function."""

    def test_uses_api_key_when_present(self):
        """Should use X-API-KEY header as rate limit key."""
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/jobs",
            "headers": [(b"x-api-key", b"test-key-123")],
        }
        request = Request(scope)
        key = _get_rate_limit_key(request)
        assert key == "test-key-123"

    def test_falls_back_to_ip(self):
        """Should fall back to client IP when no API key."""
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/jobs",
            "headers": [],
            "client": ("192.168.1.100", 12345),
        }
        request = Request(scope)
        key = _get_rate_limit_key(request)
        assert key == "192.168.1.100"


class TestLimiterStorage:
    def test_defaults_to_shared_redis(self) -> None:
        settings = Settings(redis_url="redis://cache:6379/2", rate_limit_storage_uri=None)
        assert _storage_uri(settings) == "redis://cache:6379/2"

    def test_explicit_storage_wins(self) -> None:
        settings = Settings(rate_limit_storage_uri="memory://")
        assert _storage_uri(settings) == "memory://"

    def test_limiter_uses_storage_with_memory_fallback(self) -> None:
        settings = Settings(redis_url="redis://cache:6379/2", rate_limit_storage_uri=None)
        with (
            patch("src.api.rate_limit.get_settings", return_value=settings),
            patch("src.api.rate_limit.Limiter") as limiter_cls,
        ):
            create_limiter()

        kwargs = limiter_cls.call_args.kwargs
        assert kwargs["storage_uri"] == "redis://cache:6379/2"
        assert kwargs["in_memory_fallback_enabled"] is True
        assert kwargs["default_limits"] == [settings.rate_limit_default]

class TestUploadLimit:
    def test_default_upload_limit(self):
        assert UPLOAD_LIMIT == "10/minute"

    def test_eleventh_upload_is_rejected(self, client, mock_runner):
        limiter.enabled = True
        limiter.reset()

        codes = [
            client.post("/jobs", files={"file": ("call.mp3", AUDIO, "audio/mpeg")}).status_code
            for _ in range(11)
        ]

        assert codes[:10] == [202] * 10
        assert codes[10] == 429
        assert mock_runner.submit.call_count == 10

    def test_reads_are_not_upload_limited(self, client):
        limiter.enabled = True
        limiter.reset()

        codes = {client.get("/jobs").status_code for _ in range(12)}

        assert codes == {200}
