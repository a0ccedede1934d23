"""
api/main.py -- FastAPI application entry point for the Vault credential validator.

Exposes the Vault proxy endpoints the browser form calls. Each handler is a
stateless single round trip to Vault (or the Kubernetes Secrets API), so the
only process-wide objects are the settings and the shared HTTP client.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the VaultHTTPClient on startup and closes it on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.config import router as config_router
from api.routes.vault import router as vault_router
from core.config import get_settings
from core.http import VaultHTTPClient

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.effective_log_level(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("vaultcheck.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the long-lived objects every handler shares.

    Settings first, because the HTTP client reads its timeout and TLS
    options from them.
    """
    settings = get_settings()
    app.state.settings = settings
    app.state.http = VaultHTTPClient(timeout=settings.vault_timeout, verify=settings.tls_verify())
    logger.info(
        "Vault credential validator starting (endpoints=%s, smtp_configured=%s)",
        settings.endpoint_list(),
        settings.smtp_configured(),
    )

    yield

    app.state.http.close()
    logger.info("Vault credential validator shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Vault Credential Validator",
    description="AppRole login, token inspection, capability checks and token unwrapping against HashiCorp Vault.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.host_list(),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.origin_list(),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Bodies are never logged -- they carry tokens.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(vault_router, prefix="/api", tags=["Vault"])
app.include_router(config_router, prefix="/api", tags=["Config"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, error, details?} envelope so
# the browser can show result.error without inspecting status codes.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, error: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(exclude_none=True),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


def missing_field_names(errors: list[dict]) -> list[str]:
    """Return the body field names (wire aliases) named by validation errors.

    Order follows the model's field order; duplicates are dropped.
    """
    names: list[str] = []
    for err in errors:
        loc = err.get("loc") or ()
        if len(loc) >= 2 and loc[0] == "body":
            name = str(loc[1])
            if name not in names:
                names.append(name)
    return names


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 naming the missing or empty fields.

    A body that is not a JSON object at all has no field names to report and
    gets a generic message instead.
    """
    names = missing_field_names(exc.errors())
    if not names:
        return _envelope(400, "Invalid request body: expected a JSON object.")
    return _envelope(400, f"Missing required fields: {', '.join(names)}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException in the shared envelope.

    Registered on Starlette's base class so routing 404/405s get the envelope
    too. Route handlers raise HTTPException with
    detail=ErrorResponse(...).model_dump() (a dict). When detail is already a
    structured dict, use it directly rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
