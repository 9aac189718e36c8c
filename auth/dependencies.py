"""
auth/dependencies.py -- FastAPI Depends() helpers for sessions.

Two token sources are checked in priority order:
  1. Session cookie -- set by the browser sign-in flows.
  2. Authorization: Bearer <token> header -- API clients.

Both converge on SessionClaims rehydrated from the token. The store is then
consulted: a deleted or disabled identity stops authenticating immediately,
and is_admin always reflects the stored flag, so a demotion takes effect on
the next request instead of at token expiry.

try_get_session() is the soft variant (returns None on failure).
get_current_session() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_session() and raises HTTP 403 if not admin.

Layer rule: no imports from web/ or catalog/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import replace

from fastapi import HTTPException, Request

from auth.gate import is_admin
from auth.models import SessionClaims
from auth.store import IdentityStore
from auth.tokens import claims_from_token, decode_session_token
from core.config import get_settings


def session_token_from_request(request: Request) -> str | None:
    token: str | None = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_session(request: Request) -> SessionClaims | None:
    """Return the session claims for the request, or None.

    Never raises -- callers that need a hard 401 should use get_current_session().
    """
    token = session_token_from_request(request)
    if token is None:
        return None
    payload = decode_session_token(token)
    if payload is None:
        return None
    claims = claims_from_token(payload)
    if claims is None:
        return None

    store: IdentityStore = request.app.state.identity_store
    identity = store.get_by_id(claims.subject_id)
    if identity is None or not identity.is_active:
        return None
    return replace(claims, is_admin=identity.is_admin)


def get_current_session(request: Request) -> SessionClaims:
    """Require a session. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(session: SessionClaims = Depends(get_current_session)): ...
    """
    claims = try_get_session(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return claims


def require_admin(request: Request) -> SessionClaims:
    """Require admin claims. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    claims = get_current_session(request)
    if not is_admin(claims):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return claims
