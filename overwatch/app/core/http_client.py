"""HTTP client construction for the PRC API and alert webhooks.

One pooled client is opened for the application lifespan and handed to
every PRC client and the alert webhook sender.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from overwatch.app.core.config import settings


def _build_timeout(read_timeout: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )


def _build_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Open the pooled client and close it when the lifespan ends.

        async with init_http_client() as http_client:
            ...
    """
    client = create_http_client()
    try:
        yield client
    finally:
        await client.aclose()


def create_http_client(**kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with default settings.

    The returned client should be closed when done. Accepts ``timeout``
    (single value overriding every phase) and ``transport`` (used by tests
    to plug in ``httpx.MockTransport``).
    """
    timeout_override = kwargs.get("timeout")
    if timeout_override is not None:
        timeout = httpx.Timeout(timeout_override)
    else:
        timeout = _build_timeout(settings.prc_request_timeout)

    config = {"timeout": timeout, "limits": _build_limits()}
    if kwargs.get("transport") is not None:
        config["transport"] = kwargs["transport"]
    return httpx.AsyncClient(**config)
