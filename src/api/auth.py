"""
API key check shared by the HTTP routes and the ``/ws/bins`` socket.

Sensors, collector apps and dashboards all present one of the keys in
``API_KEYS`` (comma-separated). With no keys configured every caller is
let through, which is how local development runs.
"""

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.config.settings import get_settings

DEV_MODE_KEY = "dev-mode"

api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def parse_api_keys(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]


def is_valid_api_key(api_key: str | None, configured: str | None) -> bool:
    """True in dev mode or when ``api_key`` is one of ``configured``."""
    if not configured:
        return True
    if api_key is None:
        return False
    return api_key in parse_api_keys(configured)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    FastAPI dependency guarding every route except ``/health``.

    Returns:
        The presented key, or ``"dev-mode"`` when no keys are configured

    Raises:
        HTTPException: 401 when the key is missing or unknown
    """
    configured = get_settings().api_keys
    if not configured:
        return DEV_MODE_KEY

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )
    if not is_valid_api_key(api_key, configured):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
    return api_key
