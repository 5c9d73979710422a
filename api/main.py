"""
api/main.py -- FastAPI application entry point for the authentication gateway.

Run with:  uvicorn asgi:app --reload

Lifespan builds the long-lived objects once and stores them on app.state:
  app.state.account_store  -- AccountStore (SQLAlchemy engine, connection pool)
  app.state.authenticator  -- Authenticator (stateless; shared by all requests)

Route handlers read them from request.app.state. Tests replace the lifespan
with one that wires in-memory stores and mocked provider verifiers.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import HealthResponse, ResultResponse
from api.routes.v1.user import router as user_router
from auth.models import AuthConfig
from auth.seed import seed_admin
from auth.service import Authenticator
from auth.store import AccountStore
from core.config import get_settings

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgateway.api")

# Error types raised by api.models validators. Their messages are already
# complete sentences for the client; other pydantic errors get the field name.
_CUSTOM_VALIDATION_TYPES = {"username_length", "email_format", "password_strength"}


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the account store, seed the admin, build the Authenticator.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("Authentication gateway starting up")

    store = AccountStore(settings.database_url)
    app.state.account_store = store
    if settings.admin_password:
        seed_admin(store, settings.admin_username, settings.admin_email, settings.admin_password)
    else:
        logger.info("ADMIN_PASSWORD not set -- admin seeding skipped")

    app.state.authenticator = Authenticator(store, AuthConfig.from_settings(settings))
    logger.info("Authenticator initialized")

    yield

    store.close()
    logger.info("Authentication gateway shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Authentication Gateway",
    description="Issues signed session tokens for local and Google/Facebook logins.",
    version=API_VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Only method, path, status and latency are logged -- never bodies,
# which carry passwords and provider tokens.
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

app.include_router(user_router, tags=["User"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ResultResponse envelope as the /user routes so
# clients parse every failure the same way.
# ---------------------------------------------------------------------------


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        if err.get("type") in _CUSTOM_VALIDATION_TYPES:
            messages.append(err["msg"])
        else:
            field = err.get("loc", ["body"])[-1]
            messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return messages


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the envelope when the request body fails validation."""
    return JSONResponse(
        status_code=400,
        content=ResultResponse.failure(*_validation_messages(exc)).model_dump(by_alias=True),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ResultResponse.failure(str(exc.detail)).model_dump(by_alias=True),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ResultResponse.failure("An unexpected error occurred.").model_dump(by_alias=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
