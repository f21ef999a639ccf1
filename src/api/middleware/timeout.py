"""
Request timeout middleware.

Wraps each request in an asyncio timeout and returns 504 on expiry.
Health checks and long-lived event streams are exempt.
"""

import asyncio

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

_EXCLUDED_PREFIXES = ("/health",)
_EXCLUDED_SUFFIXES = ("/events",)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Enforce a maximum request duration, returning 504 on timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if (
            any(path.startswith(p) for p in _EXCLUDED_PREFIXES)
            or any(path.endswith(s) for s in _EXCLUDED_SUFFIXES)
            or "text/event-stream" in request.headers.get("accept", "")
        ):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning(
                "Request timed out",
                path=path,
                method=request.method,
                timeout_seconds=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "detail": "Request timed out",
                    "timeout_seconds": self.timeout_seconds,
                },
            )
