"""Shared HTTP client for talking to the upstream auth server.

The client is created in the application lifespan and reused across
requests for connection pooling.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from authbridge.app.core.config import Settings


def build_http_client(settings: Settings, **kwargs) -> httpx.AsyncClient:
    """Create an HTTP client configured from settings.

    Args:
        settings: Application settings providing timeouts and pool limits
        **kwargs: Passed through to ``httpx.AsyncClient`` (e.g. ``transport``)

    Returns:
        A new httpx.AsyncClient; the caller owns and must close it
    """
    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )
    timeout = httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )
    return httpx.AsyncClient(
        base_url=settings.better_auth_upstream_url,
        timeout=timeout,
        limits=limits,
        follow_redirects=False,
        **kwargs,
    )


@asynccontextmanager
async def init_http_client(
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Yield an upstream HTTP client for the lifetime of the application.

    A client passed in (e.g. one with a mock transport in tests) is used as
    is and left open; otherwise a client is built and closed on exit.
    """
    if client is not None:
        yield client
        return

    owned = build_http_client(settings)
    try:
        yield owned
    finally:
        await owned.aclose()
