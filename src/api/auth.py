"""
API authentication using X-API-KEY header.

The validated key doubles as the owner identity of the jobs it creates.
"""

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.config.settings import get_settings

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)

DEV_OWNER = "dev-mode"


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Returns:
        The validated API key, or ``dev-mode`` when no keys are configured.

    Raises:
        HTTPException: If API key is missing or invalid
    """
    valid_keys = get_settings().api_key_list

    # No keys configured: allow all requests (dev mode)
    if not valid_keys:
        return DEV_OWNER

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    if api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key
