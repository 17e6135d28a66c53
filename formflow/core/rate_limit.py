"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from formflow.core.config import settings


def get_ip_address(request: Request) -> str:
    """Get IP address for rate limiting public routes."""
    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_ip_address,
    default_limits=["300/minute"],
)


def rate_limit_connection_test(limit: str | None = None):
    """Rate limit for connection tests (each one opens a connection to a remote system)."""
    return limiter.limit(limit or settings.TEST_CONNECTION_RATE_LIMIT)
