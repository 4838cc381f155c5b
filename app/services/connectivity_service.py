"""
connectivity_service.py — Database and upstream reachability probes

Business Rules:
- Each probe is raced against settings.connectivity_timeout_s; a probe
  that times out is reported as failed, never awaited further
- Probes never raise: each returns {ok, latency_ms, error}
- The HTTP probe runs only when a URL is given or health_probe_url is set;
  any status below 500 counts as reachable

Called by: routers/admin.py (/api/admin/connectivity), main.py (/health)
Depends on: http_client.py, database.py
"""

import asyncio
import logging
import time

import httpx
from sqlalchemy import text

from ..config import settings
from ..database import SessionLocal
from ..http_client import http

log = logging.getLogger(__name__)


def _result(ok: bool, started: float, error: str | None = None) -> dict:
    return {
        "ok": ok,
        "latency_ms": round((time.monotonic() - started) * 1000, 1),
        "error": error,
    }


def _select_one(session_factory) -> None:
    db = session_factory()
    try:
        db.execute(text("SELECT 1"))
    finally:
        db.close()


async def check_database(session_factory=SessionLocal, timeout: float | None = None) -> dict:
    started = time.monotonic()
    try:
        await asyncio.wait_for(
            asyncio.to_thread(_select_one, session_factory),
            timeout or settings.connectivity_timeout_s,
        )
    except asyncio.TimeoutError:
        log.warning("Connectivity: database probe timed out")
        return _result(False, started, "Database connection timed out")
    except Exception as e:
        log.warning(f"Connectivity: database probe failed: {e}")
        return _result(False, started, str(e))
    return _result(True, started)


async def check_http(url: str, timeout: float | None = None, client: httpx.AsyncClient | None = None) -> dict:
    started = time.monotonic()
    client = client or http
    limit = timeout or settings.connectivity_timeout_s
    try:
        resp = await asyncio.wait_for(client.get(url, timeout=limit), limit)
    except asyncio.TimeoutError:
        log.warning(f"Connectivity: {url} timed out")
        return _result(False, started, "Request timed out")
    except httpx.HTTPError as e:
        log.warning(f"Connectivity: {url} unreachable: {e}")
        return _result(False, started, str(e) or e.__class__.__name__)
    if resp.status_code >= 500:
        return _result(False, started, f"HTTP {resp.status_code}")
    return _result(True, started)


async def run_connectivity_checks(session_factory=SessionLocal, url: str | None = None,
                                  timeout: float | None = None,
                                  client: httpx.AsyncClient | None = None) -> dict:
    """Run the probes concurrently. Returns {"ok", "database", "http"?}."""
    url = url or settings.health_probe_url
    probes = {"database": check_database(session_factory, timeout)}
    if url:
        probes["http"] = check_http(url, timeout, client)

    results = dict(zip(probes, await asyncio.gather(*probes.values())))
    results["ok"] = all(r["ok"] for r in results.values())
    return results
