"""
auth/service.py -- Identity reconciliation and credential policy.

Three operations decide every authentication attempt:

  authenticate_with_password()   password sign-in -> SessionClaims | AuthFailure
  register_with_password()       password sign-up -> Identity | AuthFailure
  reconcile_federated_sign_in()  OAuth sign-in    -> ReconcileOutcome

update_identity_profile() applies the same uniqueness and hashing rules to
profile edits made from the user management routes.

Invariants:
  - At most one identity per email. The store's unique index is the guard;
    these functions do lookup-then-write and treat IntegrityError on create as
    "already exists".
  - Password and federated identities never merge. A "credentials" identity
    is never signed in through a federated provider, and a federated identity
    never through a password.
  - Provider checks run before any password comparison and before any write.

Every expected failure is returned as AuthFailure. Only SQLAlchemy errors are
caught here; anything else (including framework redirects and HTTPException)
propagates to the caller untouched.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.forms import AddUserForm, SignInForm, SignUpForm, UpdateUserForm
from auth.models import (
    CREDENTIALS_PROVIDER,
    NAME_PLACEHOLDER,
    AuthFailure,
    FailureKind,
    FederatedProfile,
    Identity,
    ReconcileOutcome,
    SessionClaims,
)
from auth.store import IdentityStore
from auth.tokens import PasswordHasher, claims_from_identity, default_hasher
from core.config import get_settings

logger = logging.getLogger("admindesk.auth")

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password. Please try again."
UNEXPECTED_MESSAGE = "An unexpected error occurred. Please try again."

_PROVIDER_LABELS = {
    CREDENTIALS_PROVIDER: "email and password",
    "github": "GitHub",
    "google": "Google",
}


def provider_label(provider: str) -> str:
    """Human-readable name for a provider tag."""
    return _PROVIDER_LABELS.get(provider, provider.capitalize())


def _unexpected() -> AuthFailure:
    return AuthFailure(kind=FailureKind.UNEXPECTED, message=UNEXPECTED_MESSAGE)


def _invalid_credentials() -> AuthFailure:
    return AuthFailure(kind=FailureKind.INVALID_CREDENTIALS, message=INVALID_CREDENTIALS_MESSAGE)


def _already_exists(email: str) -> AuthFailure:
    return AuthFailure(
        kind=FailureKind.ALREADY_EXISTS,
        message=f"User with this email {email} already exists. Please sign in instead.",
        field_errors={"email": "Email must be unique."},
    )


# ---------------------------------------------------------------------------
# Password sign-in
# ---------------------------------------------------------------------------


def authenticate_with_password(
    store: IdentityStore,
    form: SignInForm,
    hasher: PasswordHasher = default_hasher,
) -> SessionClaims | AuthFailure:
    """Authenticate an email/password sign-in.

    Order is fixed:
      1. Unknown email -> INVALID_CREDENTIALS (after a dummy comparison, so
         response time does not reveal whether the email exists).
      2. Identity owned by a federated provider -> PROVIDER_MISMATCH naming
         that provider. No password comparison is attempted.
      3. No stored hash -> INVALID_CREDENTIALS (dummy comparison again).
      4. Wrong password -> INVALID_CREDENTIALS.
      5. Inactive identity -> ACCOUNT_DISABLED. Checked only after the
         password matched so a guesser learns nothing about account state.
    """
    try:
        identity = store.find_by_email(form.email)
    except SQLAlchemyError:
        logger.exception("Identity lookup failed during password sign-in")
        return _unexpected()

    if identity is None:
        hasher.equalize(form.password)
        return _invalid_credentials()

    if identity.provider is not None and identity.provider != CREDENTIALS_PROVIDER:
        label = provider_label(identity.provider)
        return AuthFailure(
            kind=FailureKind.PROVIDER_MISMATCH,
            message=f"This account was created with {label}. Please sign in with {label} instead.",
            provider=identity.provider,
        )

    if identity.password_hash is None:
        hasher.equalize(form.password)
        return _invalid_credentials()

    if not hasher.verify(form.password, identity.password_hash):
        return _invalid_credentials()

    if not identity.is_active:
        return AuthFailure(
            kind=FailureKind.ACCOUNT_DISABLED,
            message="Your account has been disabled. Contact an administrator.",
        )

    logger.info("Password sign-in succeeded for identity %s", identity.id)
    return claims_from_identity(identity)


# ---------------------------------------------------------------------------
# Password sign-up
# ---------------------------------------------------------------------------


def register_with_password(
    store: IdentityStore,
    form: SignUpForm,
    is_admin: bool = False,
    hasher: PasswordHasher = default_hasher,
) -> Identity | AuthFailure:
    """Create a credentials identity from a validated sign-up form.

    Any existing identity for the email, whatever its provider, is a conflict.
    is_admin is honoured only when the form is an AddUserForm submitted by an
    administrator; self-service sign-up always passes a plain SignUpForm.
    """
    if isinstance(form, AddUserForm):
        is_admin = is_admin or form.is_admin

    try:
        if store.find_by_email(form.email) is not None:
            return _already_exists(form.email)

        identity = Identity(
            email=form.email,
            first_name=form.first_name,
            last_name=form.last_name,
            display_name=f"{form.first_name} {form.last_name}",
            password_hash=hasher.hash(form.password),
            provider=CREDENTIALS_PROVIDER,
            is_admin=is_admin,
            is_active=True,
        )
        created = store.create_identity(identity)
    except IntegrityError:
        # A concurrent registration for the same email won the insert.
        return _already_exists(form.email)
    except SQLAlchemyError:
        logger.exception("Identity create failed during password sign-up")
        return _unexpected()

    logger.info("Registered credentials identity %s (admin=%s)", created.id, created.is_admin)
    return created


# ---------------------------------------------------------------------------
# Federated sign-in
# ---------------------------------------------------------------------------


def _deny(message: str, provider: str | None = None, kind: FailureKind = FailureKind.DENIED) -> ReconcileOutcome:
    return ReconcileOutcome(allowed=False, failure=AuthFailure(kind=kind, message=message, provider=provider))


def _decide(store: IdentityStore, profile: FederatedProfile) -> ReconcileOutcome:
    """One pass of lookup-and-decide. May raise IntegrityError on create."""
    existing = store.find_by_email(profile.email)

    if existing is None:
        identity = Identity(
            email=profile.email,
            first_name=profile.given_name or NAME_PLACEHOLDER,
            last_name=profile.family_name or NAME_PLACEHOLDER,
            display_name=profile.display_name or profile.email,
            image=profile.picture_url,
            provider=profile.provider,
            email_verified=datetime.now(timezone.utc).isoformat(),
        )
        created = store.create_identity(identity)
        logger.info("Created federated identity %s via %s", created.id, profile.provider)
        return ReconcileOutcome(allowed=True, identity=created, created=True)

    # Checked before every other branch and before any write.
    if existing.provider == CREDENTIALS_PROVIDER:
        logger.warning(
            "Denied %s sign-in for credentials identity %s",
            profile.provider,
            existing.id,
        )
        return _deny(
            "An account with this email already exists. Please sign in with your email and password.",
            provider=CREDENTIALS_PROVIDER,
        )

    if not existing.is_active:
        return _deny(
            "Your account has been disabled. Contact an administrator.",
            kind=FailureKind.ACCOUNT_DISABLED,
        )

    if existing.provider is None:
        if store.claim_provider(existing.id, profile.provider):
            logger.info("Identity %s claimed by provider %s", existing.id, profile.provider)
            return ReconcileOutcome(allowed=True, identity=store.get_by_id(existing.id))
        # Another request claimed it between our read and our write: decide
        # again against the now-set provider.
        return _decide(store, profile)

    if existing.provider != profile.provider:
        if not get_settings().allow_cross_provider_sign_in:
            logger.warning(
                "Denied cross-provider sign-in: identity %s belongs to %s, attempted via %s",
                existing.id,
                existing.provider,
                profile.provider,
            )
            label = provider_label(existing.provider)
            return _deny(
                f"This account was created with {label}. Please sign in with {label} instead.",
                provider=existing.provider,
            )
        logger.warning(
            "Identity %s established via %s reused by %s sign-in",
            existing.id,
            existing.provider,
            profile.provider,
        )

    return ReconcileOutcome(allowed=True, identity=existing)


def reconcile_federated_sign_in(store: IdentityStore, profile: FederatedProfile) -> ReconcileOutcome:
    """Decide whether a verified federated sign-in may proceed.

    - no identity for the email          -> create it, allow
    - identity with provider=credentials -> deny, no write
    - identity with provider unset       -> claim it for this provider, allow
    - identity with a federated provider -> allow, no write (cross-provider
      reuse is logged and can be switched off in settings)

    If two first-time sign-ins race, the loser's INSERT fails on the unique
    email index and the lookup-and-decide pass runs once more.
    """
    try:
        try:
            return _decide(store, profile)
        except IntegrityError:
            logger.info("Concurrent create for %s sign-in; retrying lookup", profile.provider)
            return _decide(store, profile)
    except SQLAlchemyError:
        logger.exception("Identity store failed during %s sign-in", profile.provider)
        return ReconcileOutcome(allowed=False, failure=_unexpected())


# ---------------------------------------------------------------------------
# Profile update
# ---------------------------------------------------------------------------


def update_identity_profile(
    store: IdentityStore,
    identity_id: str,
    form: UpdateUserForm,
    allow_flags: bool = False,
    hasher: PasswordHasher = default_hasher,
) -> Identity | AuthFailure | None:
    """Apply a validated profile update.

    The email must stay unique across identities other than this one. A blank
    password keeps the stored hash; otherwise the new password is hashed at
    the fixed cost. is_admin / is_active are applied only when allow_flags is
    True (the caller is an administrator).

    Returns the updated identity, an AuthFailure, or None if identity_id does
    not exist.
    """
    try:
        other = store.find_by_email(form.email)
        if other is not None and other.id != identity_id:
            return _already_exists(form.email)

        fields: dict = {
            "first_name": form.first_name,
            "last_name": form.last_name,
            "display_name": f"{form.first_name} {form.last_name}",
            "email": form.email,
        }
        if form.password:
            fields["password_hash"] = hasher.hash(form.password)
        if allow_flags:
            if form.is_admin is not None:
                fields["is_admin"] = form.is_admin
            if form.is_active is not None:
                fields["is_active"] = form.is_active
        updated = store.update_identity(identity_id, **fields)
    except IntegrityError:
        return _already_exists(form.email)
    except SQLAlchemyError:
        logger.exception("Identity update failed for %s", identity_id)
        return _unexpected()

    if updated is not None:
        logger.info("Updated identity %s", identity_id)
    return updated
