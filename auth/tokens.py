"""
auth/tokens.py -- Password hashing, session tokens, and claim derivation.

Security design decisions:
  Passwords: bcrypt with a fixed cost of 12 rounds (work factor 2^12). The
       cost is a versioned constant, not a per-call argument; raising it only
       affects new hashes because bcrypt stores the cost inside each hash.
       PasswordHasher.equalize() runs one comparison against a dummy hash so
       a sign-in for an unknown email costs the same as a wrong password.

  Session token: python-jose JWT, HS256, signed with SECRET_KEY. The payload
       carries the identity-derived claims (sub, is_admin, name, first_name,
       last_name, picture) and expires after session_max_age_seconds.
       decode_session_token() returns None on any failure -- route layer turns
       that into a 401 or a sign-in redirect.

  Claim read: claims_from_token() type-checks every field. A forged or
       malformed value degrades to None instead of being coerced, so a string
       "false" in is_admin can never read as truthy.

Layer rule: no imports from api/, web/, or catalog/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity, SessionClaims
from core.config import get_settings

logger = logging.getLogger("admindesk.auth")

_ALGORITHM = "HS256"

# Fixed bcrypt cost for credential passwords.
BCRYPT_ROUNDS = 12

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


class PasswordHasher:
    """One-way salted password hashing.

    The policy functions in auth/service.py take a hasher argument so tests can
    pass a cheaper instance or a spy. Production code uses default_hasher.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Passwords longer than 72 bytes are truncated by bcrypt. The form layer
        caps passwords at 72 characters to stay below that threshold.
        """
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A stored value that is not a bcrypt hash (legacy or corrupted row)
        compares as a mismatch.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False

    def equalize(self, plain: str) -> None:
        """Spend one comparison's worth of work without a real hash."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("admindesk_timing_dummy")
        self.verify(plain, self._dummy_hash)


default_hasher = PasswordHasher()


# ---------------------------------------------------------------------------
# Claim derivation
# ---------------------------------------------------------------------------


def claims_from_identity(identity: Identity, picture_url: str | None = None) -> SessionClaims:
    """Build the claims to embed in a fresh session token.

    picture_url comes from the federated profile when there is one; otherwise
    the identity's stored image is used.
    """
    return SessionClaims(
        subject_id=identity.id or "",
        is_admin=identity.is_admin,
        display_name=identity.display_name,
        first_name=identity.first_name,
        last_name=identity.last_name,
        picture_url=picture_url if picture_url is not None else identity.image,
    )


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) else None


def claims_from_token(payload: dict) -> SessionClaims | None:
    """Rehydrate session claims from a verified token payload.

    Returns None when the subject is missing or not a string: a token without
    a usable subject does not identify anyone. Every other field is checked
    for its exact type and set to None otherwise.
    """
    subject_id = payload.get("sub")
    if not isinstance(subject_id, str) or not subject_id:
        return None
    is_admin = payload.get("is_admin")
    return SessionClaims(
        subject_id=subject_id,
        is_admin=is_admin if isinstance(is_admin, bool) else None,
        display_name=_str_or_none(payload.get("name")),
        first_name=_str_or_none(payload.get("first_name")),
        last_name=_str_or_none(payload.get("last_name")),
        picture_url=_str_or_none(payload.get("picture")),
    )


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def issue_session_token(claims: SessionClaims, expire_seconds: int = 0) -> str:
    """Encode a signed JWT carrying the session claims.

    Args:
        claims:         Claims built by claims_from_identity().
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.session_max_age_seconds (30 days).
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.session_max_age_seconds
    payload = {
        "sub": claims.subject_id,
        "is_admin": claims.is_admin,
        "name": claims.display_name,
        "first_name": claims.first_name,
        "last_name": claims.last_name,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=duration),
    }
    if claims.picture_url is not None:
        payload["picture"] = claims.picture_url
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature and expiry are checked here; field types are checked by
    claims_from_token().
    """
    try:
        return jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie sent on same-site navigations and top-level GETs,
        but not on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.session_max_age_seconds
    response.set_cookie(
        settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=duration,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)
