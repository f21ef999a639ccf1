"""
API rate limiting using slowapi.

Limits are keyed by API key when present, otherwise client IP. Counters
live in Redis (REDIS_URL unless RATE_LIMIT_STORAGE_URI is set) so every
worker enforces one shared budget. If that storage becomes unreachable
the limiter falls back to per-process memory with the default limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from src.config.settings import Settings, get_settings


def _get_rate_limit_key(request: Request) -> str:
    """Extract rate limit key: API key header or remote IP."""
    api_key = request.headers.get("X-API-KEY")
    if api_key:
        return api_key
    return get_remote_address(request)


def _storage_uri(settings: Settings) -> str:
    return settings.rate_limit_storage_uri or str(settings.redis_url)


def create_limiter() -> Limiter:
    """Create a configured Limiter instance."""
    settings = get_settings()
    return Limiter(
        key_func=_get_rate_limit_key,
        default_limits=[settings.rate_limit_default],
        storage_uri=_storage_uri(settings),
        in_memory_fallback_enabled=True,
        enabled=settings.rate_limit_enabled,
    )


limiter = create_limiter()

UPLOAD_LIMIT = get_settings().rate_limit_upload
