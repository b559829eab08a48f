"""Request rate limiting."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import get_settings

limiter = Limiter(key_func=get_remote_address)

_auth_limit: str | None = None


def configure_auth_limit(value: str) -> None:
    """Set the authenticate rate limit used by the running app."""
    global _auth_limit
    _auth_limit = value


def auth_rate_limit() -> str:
    """Rate limit for the authenticate route, read on each request."""
    return _auth_limit or get_settings().AUTH_RATE_LIMIT
