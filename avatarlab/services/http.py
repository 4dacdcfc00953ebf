"""Outbound HTTP client used for vendor calls and asset downloads."""

from typing import AsyncGenerator, Optional

import httpx

from avatarlab.config import get_settings

settings = get_settings()


def build_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Single-attempt client; no retries are configured."""
    return httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    )


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield a client scoped to one request."""
    async with build_http_client() as client:
        yield client
