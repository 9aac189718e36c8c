"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration and profile extraction.

Reads configuration from core.config.get_settings() at module load to decide
which providers are active. Only providers with both client ID and secret
configured get registered.

Security notes:
  Email verification is mandatory. get_federated_profile() raises ValueError
  if the provider does not confirm the email is verified. Reconciliation keys
  identities by email, so an unverified address could otherwise be used to
  reach someone else's account.

  OAuth state parameter (CSRF protection) is handled by authlib via Starlette
  SessionMiddleware: the state is stored in the session between the
  authorization redirect and the callback.

Supported providers:
  github -- Authorization code flow; static endpoints.
  google -- Authorization code flow; OIDC discovery.

Layer rule: no imports from api/, web/, or catalog/. Import from core/ is
allowed -- core/ is the kernel layer.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import FederatedProfile
from core.config import get_settings

logger = logging.getLogger("admindesk.auth.oauth")

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

# GitHub -- static endpoints (no OIDC discovery document)
if _cfg.github_client_id and _cfg.github_client_secret:
    oauth.register(
        name="github",
        client_id=_cfg.github_client_id,
        client_secret=_cfg.github_client_secret,
        access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user user:email"},
    )
    logger.info("GitHub OAuth provider registered")

# Google -- OIDC discovery
if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers() -> list[dict]:
    """Return metadata for every configured OAuth provider.

    Used by GET /api/v1/auth/providers and the sign-in routes. Returns a list
    of {"name": str, "label": str} dicts; empty if no provider is configured.
    """
    cfg = get_settings()
    providers: list[dict] = []
    if cfg.github_client_id and cfg.github_client_secret:
        providers.append({"name": "github", "label": "GitHub"})
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    return providers


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def get_federated_profile(client, provider: str, token: dict) -> FederatedProfile:
    """Normalize a provider token response into a FederatedProfile.

    Raises:
        ValueError: If a verified email cannot be confirmed, or the provider
            is unknown. The caller treats this as an authentication failure.
    """
    if provider == "github":
        return await _get_github_profile(client, token)
    elif provider == "google":
        return _get_oidc_profile(token, provider)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_profile(client, token: dict) -> FederatedProfile:
    """Build a profile from GitHub's REST API.

    GitHub does not include the email in the access token. Two API calls are
    required:
      1. GET /user -- display name and avatar.
      2. GET /user/emails -- to find the primary verified email.

    GitHub has no given/family name split; the display name is split on the
    first space as a best effort.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    user = resp.json()

    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()

    email: str | None = None
    for entry in emails_resp.json():
        if entry.get("primary") and entry.get("verified"):
            email = entry["email"]
            break

    if not email:
        raise ValueError(
            "GitHub OAuth: no primary verified email found. "
            "The user must verify their email address on GitHub before signing in."
        )

    display_name = user.get("name") or user.get("login")
    given_name: str | None = None
    family_name: str | None = None
    if user.get("name"):
        parts = user["name"].split(" ", 1)
        given_name = parts[0]
        family_name = parts[1] if len(parts) > 1 else None

    return FederatedProfile(
        provider="github",
        email=email,
        display_name=display_name,
        given_name=given_name,
        family_name=family_name,
        picture_url=user.get("avatar_url"),
    )


def _get_oidc_profile(token: dict, provider: str) -> FederatedProfile:
    """Build a profile from an OIDC id_token's userinfo claims.

    The email claim is only accepted when email_verified is True. Providers
    that omit email_verified are treated as unverified.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(
            f"{provider} OAuth: email is not verified. "
            "The provider must confirm email ownership before sign-in is allowed."
        )

    email = userinfo.get("email")
    if not email:
        raise ValueError(f"{provider} OAuth: missing email claim in userinfo")

    return FederatedProfile(
        provider=provider,
        email=email,
        display_name=userinfo.get("name"),
        given_name=userinfo.get("given_name"),
        family_name=userinfo.get("family_name"),
        picture_url=userinfo.get("picture"),
    )
