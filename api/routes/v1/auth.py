"""
api/routes/v1/auth.py -- Password sign-in, sign-up, and session endpoints.

Routes:
  POST /api/v1/auth/signin     -- password sign-in; sets session cookie
  POST /api/v1/auth/signup     -- create a credentials identity
  POST /api/v1/auth/signout    -- clears cookie; 200
  GET  /api/v1/auth/session    -- session claims for the current token (requires auth)
  GET  /api/v1/auth/providers  -- list enabled OAuth providers (public)

Bodies for signin/signup are accepted as plain JSON objects and validated by
auth/forms.py, so a bad submission yields the per-field message map rather
than FastAPI's generic 422.

Security:
  signin and signup are rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_with_password() equalizes timing for unknown emails.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from api.errors import failure_response
from api.models import IdentityResponse, ProviderInfo, SessionResponse, SignInResponse
from auth.dependencies import get_current_session
from auth.forms import SignInForm, SignUpForm, parse_form
from auth.models import AuthFailure, SessionClaims
from auth.oauth import get_enabled_providers
from auth.service import authenticate_with_password, register_with_password
from auth.store import IdentityStore
from auth.tokens import clear_session_cookie, issue_session_token, set_session_cookie
from core.config import get_settings
from core.limiter import limiter, login_limit

# Auth policy:
# - POST /api/v1/auth/signin:    public
# - POST /api/v1/auth/signup:    public
# - POST /api/v1/auth/signout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/providers: public
# - GET  /api/v1/auth/session:   requires auth (get_current_session)
router = APIRouter()


@limiter.limit(login_limit)
@router.post("/auth/signin", response_model=SignInResponse)
def signin(request: Request, body: dict = Body(...)) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Unknown email and wrong password return the same generic 401. A federated
    identity returns 409 provider_mismatch with the provider tag in detail.
    """
    form = parse_form(SignInForm, body)
    if isinstance(form, AuthFailure):
        return failure_response(form)

    store: IdentityStore = request.app.state.identity_store
    result = authenticate_with_password(store, form)
    if isinstance(result, AuthFailure):
        return failure_response(result)

    token = issue_session_token(result)
    resp = JSONResponse(
        status_code=200,
        content=SignInResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=get_settings().session_max_age_seconds,
            session=SessionResponse.from_claims(result),
        ).model_dump(),
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(login_limit)
@router.post("/auth/signup", response_model=IdentityResponse, status_code=201)
def signup(request: Request, body: dict = Body(...)) -> JSONResponse:
    """Register a credentials identity. The caller signs in separately afterwards."""
    form = parse_form(SignUpForm, body)
    if isinstance(form, AuthFailure):
        return failure_response(form)

    store: IdentityStore = request.app.state.identity_store
    result = register_with_password(store, form)
    if isinstance(result, AuthFailure):
        return failure_response(result)

    return JSONResponse(status_code=201, content=IdentityResponse.from_identity(result).model_dump())


@router.post("/auth/signout")
async def signout() -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content={"message": "Signed out."})
    clear_session_cookie(resp)
    return resp


@router.get("/auth/session", response_model=SessionResponse)
async def session(claims: SessionClaims = Depends(get_current_session)) -> SessionResponse:
    """Return the session-visible claims for the current token."""
    return SessionResponse.from_claims(claims)


@router.get("/auth/providers", response_model=list[ProviderInfo])
async def list_providers() -> list[ProviderInfo]:
    """Return the configured OAuth providers. Empty if none are configured."""
    return [ProviderInfo(**p) for p in get_enabled_providers()]
