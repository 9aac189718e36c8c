"""
api/main.py -- FastAPI application entry point for AdminDesk.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. signin_gate           -- protected paths without a session -> 302 to sign-in
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- enforces per-route rate limits from core.limiter
  6. SessionMiddleware     -- OAuth state storage for authlib

Lifespan opens the identity and catalog stores on startup and closes them on
shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.sessions import SessionMiddleware

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.categories import router as categories_router
from api.routes.v1.statuses import router as statuses_router
from api.routes.v1.users import router as users_router
from auth.dependencies import get_current_session, try_get_session
from auth.forms import VALIDATION_SUMMARY
from auth.gate import authorize, is_protected_path
from auth.models import SessionClaims
from auth.oauth import oauth as oauth_client
from auth.service import UNEXPECTED_MESSAGE
from auth.store import IdentityStore
from catalog.store import CatalogStore
from core.config import get_settings
from core.limiter import limiter

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("admindesk.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and close them on shutdown.

    Both stores share DATABASE_URL; each creates its own tables if missing.
    """
    settings = get_settings()
    logger.info("AdminDesk API starting up")
    app.state.identity_store = IdentityStore(settings.database_url)
    app.state.catalog = CatalogStore(settings.database_url)
    app.state.oauth = oauth_client
    if not app.state.identity_store.has_identities():
        logger.warning("No identities exist yet -- run `python main.py create-admin` to add one")

    yield

    app.state.catalog.close()
    app.state.identity_store.close()
    logger.info("AdminDesk API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AdminDesk API",
    description="Identity, session, and catalog administration.",
    version=_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by session-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the last one registered is the
# outermost. @app.middleware("http") functions below are registered after
# these and therefore run first.
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(SessionMiddleware, secret_key=_settings.secret_key, https_only=_settings.secure_cookies)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Sign-in gate
#
# Protected paths (PROTECTED_PATH_PATTERNS) need a valid session. Requests
# without one are redirected to the sign-in route with the original relative
# path and query as callbackUrl. The store is only consulted for protected
# paths, and always from the threadpool.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def signin_gate(request: Request, call_next):
    path = request.url.path
    if is_protected_path(path):
        claims = await run_in_threadpool(try_get_session, request)
        decision = authorize(claims is not None, path, request.url.query)
        if not decision.allowed:
            return RedirectResponse(decision.redirect_url, status_code=302)
    return await call_next(request)


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
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(categories_router, prefix="/api/v1", tags=["Categories"])
app.include_router(statuses_router, prefix="/api/v1", tags=["Statuses"])
# Browser routes are mounted by asgi.py; api/ and web/ never import each other.


# ---------------------------------------------------------------------------
# Session-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(claims: SessionClaims = Depends(get_current_session)):
    return get_swagger_ui_html(openapi_url="/openapi.json", title="AdminDesk API")


@app.get("/redoc", include_in_schema=False)
async def redoc(claims: SessionClaims = Depends(get_current_session)):
    return get_redoc_html(openapi_url="/openapi.json", title="AdminDesk API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Sign-in and sign-up throttling: 429 with Retry-After."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many sign-in attempts. Try again later.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with the first message for each offending field."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        name = loc[-1] if loc else ""
        if name and name not in fields:
            fields[name] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_failed",
                message=VALIDATION_SUMMARY,
                fields=fields,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Routes raise HTTPException with a dict detail; that dict becomes the error
    field as-is. Any other detail is wrapped in a generic envelope.
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
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message=UNEXPECTED_MESSAGE,
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Not rate limited and not behind the gate.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Report liveness and whether the identity database answers."""
    store: IdentityStore = request.app.state.identity_store
    try:
        database = "ok" if store.ping() else "error"
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        database = "error"
    return HealthResponse(version=_VERSION, components={"app": "ok", "database": database})
