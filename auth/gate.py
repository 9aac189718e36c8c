"""
auth/gate.py -- Path protection and per-resource authorization.

Two layers:
  authorize()            coarse gate run for every request: protected paths
                         need a session, everything else passes through.
  can_manage_identity()  fine-grained check for one identity record: admins
                         may manage anyone, others only themselves.

The gate never renders anything. It returns a GateDecision; the middleware in
api/main.py turns a denial into a 302 to the sign-in route.

Callback targets are always relative (path plus query). The absolute request
URL is never echoed into the redirect, so the sign-in page can redirect back
without becoming an open redirect.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlencode

from auth.models import SessionClaims
from core.config import get_settings


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    redirect_url: str | None = None


@lru_cache(maxsize=8)
def _compile(patterns: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p) for p in patterns)


def is_protected_path(path: str) -> bool:
    """Return True if the path matches one of the configured protected patterns."""
    patterns = _compile(tuple(get_settings().protected_path_patterns))
    return any(p.match(path) for p in patterns)


def safe_next(next_url: str | None) -> str:
    """Validate a post-sign-in redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative URLs ("//host") that would
    send the browser off-site after sign-in.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


def sign_in_redirect_url(callback: str) -> str:
    """Build the sign-in URL carrying the callback target."""
    return f"{get_settings().signin_path}?{urlencode({'callbackUrl': safe_next(callback)})}"


def authorize(has_session: bool, path: str, query: str = "") -> GateDecision:
    """Decide whether a request may reach its route.

    Unprotected paths are always allowed. A protected path without a session
    is denied with a redirect to the sign-in route; the original path and
    query become the callbackUrl.
    """
    if has_session or not is_protected_path(path):
        return GateDecision(allowed=True)
    callback = f"{path}?{query}" if query else path
    return GateDecision(allowed=False, redirect_url=sign_in_redirect_url(callback))


def is_admin(claims: SessionClaims | None) -> bool:
    """Only an explicit boolean True grants admin rights."""
    return claims is not None and claims.is_admin is True


def can_manage_identity(claims: SessionClaims | None, owner_id: str) -> bool:
    """Allow admins, or the identity acting on its own record."""
    if claims is None:
        return False
    return is_admin(claims) or claims.subject_id == owner_id
