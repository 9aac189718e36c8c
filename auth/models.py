"""
auth/models.py -- Domain dataclasses for identities, sessions, and outcomes.

Pattern: Data class (pure data container, zero logic). Stores and the policy
in auth/service.py do the work; these types only carry shape.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Provider tag for identities established with a password. Every other tag
# ("github", "google", ...) names a federated provider.
CREDENTIALS_PROVIDER = "credentials"

# Stored in place of a missing given/family name from a federated profile.
NAME_PLACEHOLDER = "N/A"


@dataclass
class Identity:
    """One authenticable account, keyed by email.

    provider is None for legacy or seeded records created without a tag. It is
    distinct from "credentials": a providerless record may still be claimed by
    the first federated provider that signs in with its email.

    password_hash is None for identities established through a federated
    provider (they have no local password).
    """

    email: str
    first_name: str
    last_name: str
    display_name: str
    id: str | None = None
    password_hash: str | None = None
    provider: str | None = None  # "credentials", "github", "google", or None
    image: str | None = None
    is_admin: bool = False
    is_active: bool = True
    email_verified: str | None = None  # ISO 8601, federated sign-ups only
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class FederatedProfile:
    """Normalized profile extracted from an OAuth provider's token response.

    email is always verified by the time one of these is built (see
    auth/oauth.py). The name fields are best-effort and may be None.
    """

    provider: str
    email: str
    display_name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture_url: str | None = None


@dataclass
class SessionClaims:
    """Identity-derived fields carried in the signed session token.

    On read every field except subject_id may be None: a token field with the
    wrong type degrades to None rather than being coerced.
    """

    subject_id: str
    is_admin: bool | None = None
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    picture_url: str | None = None


class FailureKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    INVALID_CREDENTIALS = "invalid_credentials"
    PROVIDER_MISMATCH = "provider_mismatch"
    ALREADY_EXISTS = "already_exists"
    DENIED = "denied"
    ACCOUNT_DISABLED = "account_disabled"
    UNEXPECTED = "unexpected"


@dataclass
class AuthFailure:
    """Structured failure returned by every identity operation.

    provider is populated for PROVIDER_MISMATCH (the provider the identity
    actually uses) and DENIED (the identity's existing provider) so callers
    never need to recover it from message text.
    """

    kind: FailureKind
    message: str
    field_errors: dict[str, str] = field(default_factory=dict)
    provider: str | None = None


@dataclass
class ReconcileOutcome:
    """Result of reconciling one federated sign-in attempt.

    allowed=True carries the identity to issue a session for; created is True
    when this attempt established the identity. allowed=False carries the
    failure and guarantees no record was written.
    """

    allowed: bool
    identity: Identity | None = None
    created: bool = False
    failure: AuthFailure | None = None
