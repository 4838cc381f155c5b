"""
main.py — FastAPI application: middleware, error handlers, router mounts

Business Rules:
- Every response carries X-Request-ID (8 chars), X-API-Version and the
  OWASP security headers, error responses included
- HTTP errors answer {error, status_code, request_id}; validation errors
  add the pydantic detail list; anything unhandled is logged and answered
  as a 500 in the same shape
- Sessions are signed cookies (SessionMiddleware); https-only in production
- Local storage is served from /media so stored URLs resolve in dev

Called by: uvicorn (app.main:app), tests/conftest.py
Depends on: config, logging_config, rate_limit, http_client, routers/*
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .config import APP_VERSION, settings
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import admin, auth, commercial, gamification, land, notifications, plans, properties, providers
from .schemas.errors import ErrorResponse
from .services.connectivity_service import run_connectivity_checks

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log.info(f"Estates back office {APP_VERSION} starting ({settings.app_env})")
    yield
    await close_clients()
    log.info("Shutdown complete")


app = FastAPI(title="Estates Marketplace", version=APP_VERSION, lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    https_only=settings.is_production,
    same_site="lax",
)


# ── Request ID + security headers ────────────────────────────────────

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-API-Version": "v1",
}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    started = time.monotonic()

    response = await call_next(request)

    elapsed_ms = (time.monotonic() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    for name, value in _SECURITY_HEADERS.items():
        response.headers[name] = value
    if elapsed_ms > 1000:
        log.warning(f"[{request_id}] slow request {request.method} {request.url.path} {elapsed_ms:.0f}ms")
    return response


# ── Error handlers ───────────────────────────────────────────────────


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(error=str(exc.detail), status_code=exc.status_code, request_id=_request_id(request))
    return JSONResponse(body.model_dump(exclude_none=True), status_code=exc.status_code,
                        headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Validation error",
        status_code=422,
        request_id=_request_id(request),
        detail=[{k: v for k, v in e.items() if k in ("loc", "msg", "type")} for e in exc.errors()],
    )
    return JSONResponse(body.model_dump(), status_code=422)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    log.exception(f"[{request_id}] unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        {
            "error": "Internal server error",
            "type": exc.__class__.__name__,
            "status_code": 500,
            "request_id": request_id,
        },
        status_code=500,
    )


# ── Routers ──────────────────────────────────────────────────────────

for module in (auth, admin, properties, providers, land, commercial, plans, notifications, gamification):
    app.include_router(module.router)

if settings.storage_backend == "local":
    app.mount("/media", StaticFiles(directory=settings.storage_dir, check_dir=False), name="media")


# ── Health ───────────────────────────────────────────────────────────


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/health/ready")
async def health_ready():
    checks = await run_connectivity_checks()
    return JSONResponse(
        {"status": "ok" if checks["ok"] else "degraded", "checks": checks},
        status_code=200 if checks["ok"] else 503,
    )
