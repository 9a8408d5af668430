"""HTTP client construction for REST-backed counter stores.

The rate limiter hits its store on every protected request, so the client
keeps a small pool of keep-alive connections and short timeouts: a slow
store must degrade into the limiter's failure mode rather than stall
the request.
"""

from typing import Optional

import httpx

from bookmarketer.app.core.config import settings


def create_http_client(
    base_url: str,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create a new HTTP client for a REST counter store.

    Note: The returned client should be closed when done, which the owning
    store does in its ``close()``.

    Args:
        base_url: Store REST endpoint
        token: Bearer token sent on every request
        timeout: Per-operation timeout in seconds (defaults to settings)
        transport: Optional transport override (used by tests)

    Returns:
        A new httpx.AsyncClient instance.
    """
    timeout_value = timeout if timeout is not None else settings.store_timeout_seconds
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=httpx.Timeout(timeout_value),
        limits=httpx.Limits(
            max_connections=50,
            max_keepalive_connections=10,
            keepalive_expiry=30.0,
        ),
        transport=transport,
    )
