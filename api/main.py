"""
api/main.py -- FastAPI application entry point for postgate.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost; the last one registered wraps the rest):
  1. log_requests        -- one log line per response with latency
  2. session_middleware  -- binds the signed session cookie to the session
                            store and commits writable sessions afterwards
  3. CORSMiddleware      -- adds CORS headers for allowed browser origins

Lifespan handles startup (stores, session backend, purge task) and shutdown
(cancel purge task, close stores) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.posts import router as posts_router
from api.routes.users import router as users_router
from auth.accessor import SessionBinding
from auth.sessions import SessionStore, build_session_store
from auth.store import UserStore
from auth.tokens import clear_session_cookie, set_session_cookie, unsign_token
from core.config import get_settings
from core.errors import AppError, StoreUnavailableError
from posts.store import PostStore

__version__ = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("postgate.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Drop expired sessions every `interval` seconds.

    Expired entries are already invisible to load(); this only reclaims
    space. Failures are logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await run_in_threadpool(app.state.session_store.purge_expired)
        except StoreUnavailableError:
            logger.warning("Session purge skipped: store unavailable")
            continue
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build stores on startup, tear them down on shutdown.

    The session backend is chosen here, once, from SESSION_BACKEND; routes
    and middleware only see the SessionStore interface on app.state.
    """
    settings = get_settings()
    logger.info("postgate API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.post_store = PostStore(settings.database_url)
    app.state.session_store = build_session_store(settings)
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.session_store.close()
    app.state.post_store.close()
    app.state.user_store.close()
    logger.info("postgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="postgate API",
    description="Session-authenticated users and posts.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,  # the session cookie must cross origins
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Session middleware
#
# Registered before log_requests so it sits inside it: the request log line
# reflects the final status, including a failed session commit.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def session_middleware(request: Request, call_next):
    """Bind the inbound session cookie and commit writable sessions.

    A cookie whose signature does not verify is treated as no session at all.
    Commit only happens for responses below 400, so a rejected sign-in or a
    failed handler never persists half-applied session changes.

    The commit is not atomic with the handler's own writes. If the session
    store fails after a handler has already changed the database (sign-up
    inserted the user, account deletion removed it), the client gets a 500
    while that change stays. Concurrent writable requests on one session are
    last-writer-wins on the whole payload.
    """
    store: SessionStore = request.app.state.session_store
    token = unsign_token(request.cookies.get(_settings.session_cookie_name))
    binding = SessionBinding(store, token)
    request.state.session = binding

    response = await call_next(request)

    if binding.wants_commit and response.status_code < 400:
        try:
            result = await run_in_threadpool(binding.commit)
        except StoreUnavailableError as exc:
            logger.error("Session commit failed on %s %s", request.method, request.url.path)
            return _error_response(exc)
        if result.destroyed:
            clear_session_cookie(response)
        else:
            set_session_cookie(response, result.token)
    return response


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

app.include_router(users_router, tags=["Users"])
app.include_router(auth_router, tags=["Auth"])
app.include_router(posts_router, tags=["Posts"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        # Infrastructure errors: the specific message stays in the server log.
        error = ErrorDetail(code="internal_error", message="An unexpected error occurred.")
    else:
        error = ErrorDetail(code=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=error).model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map the core.errors taxonomy onto HTTP statuses."""
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with structured error when request body or path params fail validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured envelope for framework-raised errors (unknown route, wrong method)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
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
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus a reachability check for the database and session store."""
    database_ok = request.app.state.user_store.ping()
    sessions_ok = request.app.state.session_store.ping()
    return HealthResponse(
        version=__version__,
        components={
            "app": "ok",
            "database": "ok" if database_ok else "error",
            "sessions": "ok" if sessions_ok else "error",
        },
    )
