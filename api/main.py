"""
api/main.py -- FastAPI application entry point for the login service.

Run with:      python main.py
               uvicorn asgi:app --reload

Middleware (outermost to innermost):
  1. log_requests      -- one log line per request with latency and client IP
  2. security_headers  -- nosniff / frame DENY / XSS headers on every response

Lifespan builds the collaborators (AccountStore, PasswordHasher,
SessionManager, AccountService) from Settings, publishes them on app.state,
and starts the session sweep task. Shutdown cancels the task and disposes of
the engine. Tests swap the lifespan for one that wires isolated stores.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse, StatusResponse
from api.routes.accounts import router as accounts_router
from auth.dependencies import session_token
from auth.errors import AccountError
from auth.passwords import PasswordHasher
from auth.service import AccountService
from auth.sessions import SessionManager
from auth.store import AccountStore
from core.config import get_settings

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loginsvc.api")

_VERSION = "1.0.0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_response(status_code: int, error: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Background session sweep
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: int) -> None:
    """Purge expired sessions every `interval` seconds.

    Expiry is already enforced lazily on every lookup; this only bounds memory
    held by sessions that are never presented again. CancelledError from
    task.cancel() during shutdown unwinds the loop at the sleep.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.sessions.purge_expired()
        if removed:
            logger.info("Session sweep removed %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build and tear down application-level collaborators.

    A database that is down at startup is logged, not fatal: the server still
    comes up and /health reports it as disconnected until it recovers.
    """
    logger.info("Login service starting up (environment=%s)", _settings.environment)
    store = AccountStore(_settings.database_url)
    if not store.ready:
        logger.warning("Database initialization failed, continuing -- /health will report disconnected")
    sessions = SessionManager(ttl=timedelta(seconds=_settings.session_ttl_seconds))
    hasher = PasswordHasher(rounds=_settings.bcrypt_rounds)

    app.state.store = store
    app.state.sessions = sessions
    app.state.account_service = AccountService(store, sessions, hasher)
    app.state.started_at = time.monotonic()
    app.state.sweep_task = asyncio.create_task(_sweep_loop(app, _settings.session_sweep_interval_seconds))
    logger.info(
        "Sessions: ttl=%ss cookie=%s secure=%s",
        _settings.session_ttl_seconds,
        _settings.session_cookie_name,
        _settings.secure_cookies,
    )

    yield

    app.state.sweep_task.cancel()
    store.close()
    logger.info("Login service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Login Service",
    description="Username/password accounts with cookie sessions.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
#
# @app.middleware("http") wraps in reverse registration order: the LAST one
# registered is outermost. security_headers is registered first so the
# request log sees the final status code.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    forwarded = request.headers.get("X-Forwarded-For", "")
    client_ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else "unknown")
    logger.info("%s %s %d %.1fms %s", request.method, request.url.path, response.status_code, ms, client_ip)
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(accounts_router, prefix="/api", tags=["Accounts"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves the API in the same ErrorResponse envelope so clients
# can parse errors without choosing a schema by status code.
# ---------------------------------------------------------------------------


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Map the auth error taxonomy onto HTTP.

    5xx errors are logged with their chained cause; the client only gets the
    generic message the exception class carries.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc_info=exc,
        )
    return _error_response(
        exc.status_code,
        ErrorDetail(code=exc.code, message=exc.message, field=exc.field),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or wrongly typed fields are a 400, like any other bad input."""
    return _error_response(
        400,
        ErrorDetail(code="validation_error", message="Request validation failed.", detail=str(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (404 unknown path, 405 wrong method) in the shared envelope."""
    if exc.status_code == 404:
        logger.info("404 - Not found: %s", request.url.path)
        error = ErrorDetail(code="not_found", message=f"The path {request.url.path} was not found.")
    else:
        error = ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
    return _error_response(exc.status_code, error)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, ErrorDetail(code="internal_error", message="An unexpected error occurred."))


# ---------------------------------------------------------------------------
# Operational endpoints
#
# Defined directly on the app (not in a router) so they are reachable
# regardless of router registration.
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Report liveness and database connectivity. 503 when the DB is unreachable."""
    if request.app.state.store.ping():
        body = HealthResponse(status="healthy", database="connected", timestamp=_now_iso())
        return JSONResponse(status_code=200, content=body.model_dump())
    body = HealthResponse(status="unhealthy", database="disconnected", timestamp=_now_iso())
    return JSONResponse(status_code=503, content=body.model_dump())


@app.get("/status", response_model=StatusResponse, tags=["Health"])
def status(request: Request) -> StatusResponse:
    """Process diagnostics. Looks the caller's session up without renewing it."""
    return StatusResponse(
        uptime_seconds=int(time.monotonic() - request.app.state.started_at),
        timestamp=_now_iso(),
        active_sessions=request.app.state.sessions.active_count(),
        authenticated=request.app.state.sessions.resolve(session_token(request)) is not None,
    )
