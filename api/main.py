"""
api/main.py -- FastAPI application entry point for PostGate.

Exposes the authentication core and post CRUD over HTTP.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers (with credentials) for allowed origins

Lifespan handles startup (primary store with retry, post store, Redis session
store, session issuer, unhandled-exception guard) and shutdown (restore the
loop handler, close every store) symmetrically. All store handles live on
app.state and are passed explicitly into the gate and the issuer.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.posts import router as posts_router
from auth.dependencies import get_current_account
from auth.errors import AuthError
from auth.models import Account
from auth.service import SessionIssuer
from auth.sessions import SessionStore, create_redis_client
from auth.store import AccountStore
from core.config import get_settings
from posts.store import PostStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("postgate.api")

_settings = get_settings()

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Primary store connection with fixed-backoff retry
# ---------------------------------------------------------------------------


async def connect_with_retry(factory: Callable[[], T], delay: float, name: str) -> T:
    """Call factory() until it succeeds, sleeping `delay` seconds between attempts.

    Retries indefinitely: the API is useless without its primary store, and
    the store is expected to come up eventually (container start order).
    asyncio.sleep keeps the event loop free while waiting.
    """
    attempt = 1
    while True:
        try:
            store = factory()
            logger.info("%s connected (attempt %d)", name, attempt)
            return store
        except SQLAlchemyError as exc:
            logger.error("%s connection failed (attempt %d): %s -- retrying in %.1fs", name, attempt, exc, delay)
            attempt += 1
            await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Unhandled exception guard
# ---------------------------------------------------------------------------


def handle_unhandled_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Last-resort handler for exceptions nobody awaited (e.g. a crashed task).

    Logs the failure and sends SIGTERM to this process. uvicorn treats SIGTERM
    as a graceful shutdown: it stops accepting connections, lets in-flight
    requests finish, runs the lifespan shutdown, then exits.
    """
    exc = context.get("exception")
    logger.critical(
        "UNHANDLED EXCEPTION -- shutting down: %s",
        context.get("message", "unknown error"),
        exc_info=exc,
    )
    os.kill(os.getpid(), signal.SIGTERM)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Account store first, with retry -- every auth flow depends on it.
      2. Post store -- same database, already reachable once step 1 passed.
      3. Redis session store -- the client connects lazily on first command.
      4. SessionIssuer last -- built from the handles above.
    """
    settings = get_settings()
    logger.info("PostGate API starting up (environment=%s)", settings.environment)

    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(handle_unhandled_exception)

    app.state.accounts = await connect_with_retry(
        lambda: AccountStore(settings.database_url),
        settings.db_connect_retry_seconds,
        "Account store",
    )
    app.state.posts = PostStore(settings.database_url)
    app.state.sessions = SessionStore(
        create_redis_client(settings.redis_url, socket_timeout=settings.redis_socket_timeout),
        prefix=settings.session_key_prefix,
    )
    app.state.issuer = SessionIssuer(app.state.accounts, app.state.sessions)
    logger.info("Auth initialized")

    yield

    # Shutdown
    loop.set_exception_handler(previous_handler)
    await app.state.sessions.close()
    app.state.posts.close()
    app.state.accounts.close()
    logger.info("PostGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="PostGate API",
    description="Session/token authentication in front of a users and posts API.",
    version=VERSION,
    lifespan=lifespan,
    # Disable built-in /docs, /redoc and /openapi.json so we can add auth protection.
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/openapi.json", include_in_schema=False)
async def openapi(account: Account = Depends(get_current_account)):
    """OpenAPI schema -- requires authentication."""
    return JSONResponse(app.openapi())


@app.get("/docs", include_in_schema=False)
async def docs(account: Account = Depends(get_current_account)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="PostGate API")


@app.get("/redoc", include_in_schema=False)
async def redoc(account: Account = Depends(get_current_account)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="PostGate API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render gate and session-flow failures.

    The message is the short, client-safe text the error was raised with;
    tokens, hashes and internal causes never reach the body.
    """
    response = JSONResponse(status_code=exc.status_code, content={"error": exc.to_detail()})
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already a structured dict, use it directly as the error field rather than
    stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and per-store status."""
    database_ok = request.app.state.accounts.ping()
    redis_ok = await request.app.state.sessions.ping()
    components = {
        "app": "ok",
        "database": "ok" if database_ok else "error",
        "redis": "ok" if redis_ok else "error",
    }
    status = "healthy" if database_ok and redis_ok else "degraded"
    return HealthResponse(status=status, version=VERSION, components=components)
