"""Shared HTTP client for outbound probes.

One module-level httpx.AsyncClient reused by the connectivity checks
(/health/ready, /api/admin/connectivity). Redirects are not followed so a
probe reports the status of the URL it was given.

Usage:
    from app.http_client import http
    resp = await http.get(url, timeout=5)
"""

import httpx

from .config import APP_VERSION, settings

http = httpx.AsyncClient(
    timeout=settings.connectivity_timeout_s,
    limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    headers={"User-Agent": f"estates-backoffice/{APP_VERSION}"},
    follow_redirects=False,
)


async def close_clients():
    """Shut down the shared client. Called from the app lifespan."""
    if not http.is_closed:
        await http.aclose()
