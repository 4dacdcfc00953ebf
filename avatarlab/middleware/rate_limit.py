"""Rate limiting middleware using SlowAPI."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from avatarlab.config import get_settings

settings = get_settings()


def get_user_or_ip(request: Request) -> str:
    """
    Get rate limit key from the authenticated user or IP address.

    Uses the user id set by the auth dependency, falls back to IP address.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_or_ip,
    storage_uri=settings.rate_limit_storage_uri,
    strategy="fixed-window",
)


def rate_limit_generation():
    """Rate limit for vendor-backed generation and proxy endpoints."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute}/minute;{settings.rate_limit_per_hour}/hour",
        key_func=get_user_or_ip,
    )


def rate_limit_general():
    """Rate limit for cheap endpoints (listing, downloads)."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute * 2}/minute",
        key_func=get_user_or_ip,
    )
