"""
web/routes.py -- Browser sign-in routes for AdminDesk.

These routes serve browser navigation: form posts and OAuth hops. They never
render HTML; every outcome is a redirect, except GET /signin which describes
the sign-in options as JSON for the front end to draw.

Route registration order matters: /signin/oauth/{provider} and
/signin/callback/{provider} are registered before GET /signin.

Routes:
  GET  /signin/oauth/{provider}     -- OAuth redirect to provider
  GET  /signin/callback/{provider}  -- OAuth callback; reconcile and issue session
  GET  /signin                      -- sign-in options and whitelisted error message
  POST /signin                      -- password sign-in form post
  POST /signup                      -- password sign-up form post; signs in on success
  POST /signout                     -- clear cookie, redirect to sign-in

Redirect rules:
  success -> safe_next(callbackUrl), always a relative path
  failure -> ERROR_PATH?error=<failure code> (callbackUrl carried along)

Layer rule: no imports from api/. Only asgi.py joins api/ and web/.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from auth.dependencies import try_get_session
from auth.forms import SignInForm, SignUpForm, parse_form
from auth.gate import safe_next
from auth.models import AuthFailure, FailureKind
from auth.oauth import get_enabled_providers, get_federated_profile
from auth.service import authenticate_with_password, provider_label, reconcile_federated_sign_in, register_with_password
from auth.store import IdentityStore
from auth.tokens import claims_from_identity, clear_session_cookie, issue_session_token, set_session_cookie
from core.config import get_settings
from core.limiter import limiter, login_limit

logger = logging.getLogger("admindesk.web")

router = APIRouter()

# Whitelist for ?error= on GET /signin. The raw query value is never echoed
# back; only a message from this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    FailureKind.VALIDATION_FAILED.value: "Validation failed. Required fields are missing or invalid.",
    FailureKind.INVALID_CREDENTIALS.value: "Invalid email or password. Please try again.",
    FailureKind.PROVIDER_MISMATCH.value: "This account uses a different sign-in method.",
    FailureKind.ALREADY_EXISTS.value: "An account with this email already exists. Please sign in instead.",
    FailureKind.DENIED.value: "This account uses a different sign-in method.",
    FailureKind.ACCOUNT_DISABLED.value: "Your account has been disabled. Contact an administrator.",
    FailureKind.UNEXPECTED.value: "An unexpected error occurred. Please try again.",
    "oauth_failed": "OAuth authentication failed. Please try again.",
}

_KNOWN_PROVIDERS = {"credentials", "github", "google"}

_CALLBACK_SESSION_KEY = "signin_callback_url"


def _failure_redirect(code: str, provider: Optional[str] = None, callback: Optional[str] = None) -> RedirectResponse:
    params = {"error": code}
    if provider:
        params["provider"] = provider
    if callback:
        params["callbackUrl"] = safe_next(callback)
    return RedirectResponse(f"{get_settings().error_path}?{urlencode(params)}", status_code=302)


def _session_redirect(claims, next_url: str) -> RedirectResponse:
    resp = RedirectResponse(safe_next(next_url), status_code=302)
    set_session_cookie(resp, issue_session_token(claims))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/signin/oauth/{provider}")
async def oauth_redirect(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page.

    The provider name is checked against the enabled list so a crafted name
    cannot reach an unregistered client. callbackUrl is kept in the
    server-signed session until the provider sends the browser back.
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        return _failure_redirect("oauth_failed")

    request.session[_CALLBACK_SESSION_KEY] = safe_next(request.query_params.get("callbackUrl"))
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/signin/callback/{provider}", name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> RedirectResponse:
    """Finish a federated sign-in.

    Flow:
      1. Exchange the authorization code (authlib verifies the state).
      2. Build a FederatedProfile; unverified emails are rejected.
      3. Reconcile against the identity store.
      4. Issue the session token, set the cookie, redirect to callbackUrl.
    """
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        return _failure_redirect("oauth_failed")

    callback = request.session.pop(_CALLBACK_SESSION_KEY, "/")
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return _failure_redirect("oauth_failed", callback=callback)

    try:
        profile = await get_federated_profile(client, provider, token)
    except ValueError:
        logger.warning("OAuth sign-in rejected: unverified or missing email from %r", provider)
        return _failure_redirect("oauth_failed", callback=callback)

    store: IdentityStore = request.app.state.identity_store
    outcome = await run_in_threadpool(reconcile_federated_sign_in, store, profile)
    if not outcome.allowed:
        failure = outcome.failure
        return _failure_redirect(failure.kind.value, provider=failure.provider, callback=callback)

    claims = claims_from_identity(outcome.identity, picture_url=profile.picture_url)
    return _session_redirect(claims, callback)


# ---------------------------------------------------------------------------
# Password sign-in, sign-up, sign-out
# ---------------------------------------------------------------------------


@router.get("/signin")
def signin_options(request: Request):
    """Describe the sign-in page: error message, provider hint, OAuth buttons.

    A request that already carries a valid session goes straight to its
    callbackUrl.
    """
    callback = safe_next(request.query_params.get("callbackUrl"))
    if try_get_session(request) is not None:
        return RedirectResponse(callback, status_code=302)

    code = request.query_params.get("error", "")
    provider = request.query_params.get("provider", "")
    provider = provider if provider in _KNOWN_PROVIDERS else None
    return JSONResponse(
        content={
            "error": code if code in _ERROR_MESSAGES else None,
            "message": _ERROR_MESSAGES.get(code),
            "provider": provider,
            "provider_label": provider_label(provider) if provider else None,
            "callbackUrl": callback,
            "providers": get_enabled_providers(),
        }
    )


@limiter.limit(login_limit)
@router.post("/signin")
def signin_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    callbackUrl: Optional[str] = Form(default=None),
) -> RedirectResponse:
    """Handle the password sign-in form.

    A plain def: FastAPI runs it in the threadpool, so the bcrypt comparison
    never blocks the event loop.
    """
    form = parse_form(SignInForm, {"email": email, "password": password})
    if isinstance(form, AuthFailure):
        return _failure_redirect(form.kind.value, callback=callbackUrl)

    store: IdentityStore = request.app.state.identity_store
    result = authenticate_with_password(store, form)
    if isinstance(result, AuthFailure):
        return _failure_redirect(result.kind.value, provider=result.provider, callback=callbackUrl)
    return _session_redirect(result, callbackUrl)


@limiter.limit(login_limit)
@router.post("/signup")
def signup_post(
    request: Request,
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
    callbackUrl: Optional[str] = Form(default=None),
) -> RedirectResponse:
    """Handle the sign-up form and sign the new identity in."""
    data = {"first_name": first_name, "last_name": last_name, "email": email, "password": password}
    form = parse_form(SignUpForm, data)
    if isinstance(form, AuthFailure):
        return _failure_redirect(form.kind.value, callback=callbackUrl)

    store: IdentityStore = request.app.state.identity_store
    result = register_with_password(store, form)
    if isinstance(result, AuthFailure):
        return _failure_redirect(result.kind.value, callback=callbackUrl)
    return _session_redirect(claims_from_identity(result), callbackUrl)


@router.post("/signout")
def signout(request: Request) -> RedirectResponse:
    """Clear the session cookie and redirect to the sign-in route."""
    resp = RedirectResponse(get_settings().signin_path, status_code=302)
    clear_session_cookie(resp)
    return resp
