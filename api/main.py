"""
api/main.py -- FastAPI application entry point for Tradepost.

Exposes account registration, login, and the rotating session lifecycle over
HTTP. Every response, success or error, uses the envelope defined in
api/models.py.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins;
                              credentials allowed so the token cookies flow

Lifespan builds the collaborators once (stores, token issuer, controller)
and hangs them on app.state. Route handlers reach them through the
dependencies in auth/dependencies.py. Shutdown closes the engine and the
bcrypt pool symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ApiResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.controller import SessionController
from auth.errors import ApiError, InternalError
from auth.errors import ValidationError as InputValidationError
from auth.passwords import shutdown_hash_pool
from auth.schemas import describe_errors
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from core.config import get_settings
from core.media import AvatarStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tradepost.api")

settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the collaborators on startup and release them on shutdown.

    Startup order follows the dependency chain:
      1. UserStore -- owns the engine and creates tables.
      2. TokenIssuer -- needs only the settings.
      3. SessionStore -- needs both of the above.
      4. AvatarStore, then SessionController on top of everything.
    """
    logger.info("Tradepost API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.token_issuer = TokenIssuer(TokenConfig.from_settings(settings))
    app.state.session_store = SessionStore(app.state.user_store, app.state.token_issuer)
    app.state.media = AvatarStore(Path(settings.media_dir), settings.media_base_url, settings.avatar_max_bytes)
    app.state.controller = SessionController(
        app.state.user_store,
        app.state.session_store,
        app.state.token_issuer,
        app.state.media,
        revoke_sessions_on_password_change=settings.revoke_sessions_on_password_change,
    )
    logger.info(
        "Auth initialized (access_ttl=%ds refresh_ttl=%ds)",
        settings.access_token_expire_seconds,
        settings.refresh_token_expire_seconds,
    )

    yield

    app.state.user_store.close()
    shutdown_hash_pool()
    logger.info("Tradepost API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tradepost API",
    description="Marketplace accounts, sessions, and saved products.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Only method, path, status, and latency are logged. Headers and bodies are
# not, since they carry tokens and passwords.
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

app.include_router(users_router, prefix="/api/v1", tags=["Users"])
# Avatar files are mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ApiResponse envelope so clients can parse
# errors uniformly: statusCode, message, success=false, and a machine code.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiResponse.fail(status_code, code, message).body())


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render the domain error taxonomy from auth/errors.py."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies become the same 400 as a failed parse_input()."""
    err = InputValidationError(describe_errors(exc.errors()))
    return _error_response(err.status_code, err.code, err.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods, and any other framework-level HTTP error."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response
    body. The client receives the generic InternalError message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    err = InternalError()
    return _error_response(err.status_code, err.code, err.message)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, current version, and database reachability."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
