"""
tests/test_oauth_profile.py -- Unit tests for auth/oauth.py profile extraction.

The authlib client is replaced by a small fake whose get() returns canned
GitHub API responses; OIDC providers only need the token's userinfo.

Coverage:
  - GitHub: primary verified email, name split, avatar, missing verified email
  - Google: verified email accepted, unverified or missing email rejected
  - Unknown provider rejected
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from auth.oauth import get_enabled_providers, get_federated_profile


class _FakeGitHub:
    def __init__(self, user: dict, emails: list[dict]) -> None:
        self._responses = {"user": user, "user/emails": emails}

    async def get(self, path: str, token=None):
        resp = MagicMock()
        resp.json.return_value = self._responses[path]
        return resp


def _run(coro):
    return asyncio.run(coro)


class TestGitHubProfile:
    def test_primary_verified_email_and_name_split(self) -> None:
        client = _FakeGitHub(
            {"login": "octo", "name": "Octo Van Cat", "avatar_url": "https://avatars.example.com/octo.png"},
            [
                {"email": "old@example.com", "primary": False, "verified": True},
                {"email": "octo@example.com", "primary": True, "verified": True},
            ],
        )
        profile = _run(get_federated_profile(client, "github", {}))
        assert profile.provider == "github"
        assert profile.email == "octo@example.com"
        assert profile.display_name == "Octo Van Cat"
        assert (profile.given_name, profile.family_name) == ("Octo", "Van Cat")
        assert profile.picture_url == "https://avatars.example.com/octo.png"

    def test_login_used_when_name_missing(self) -> None:
        client = _FakeGitHub({"login": "octo"}, [{"email": "octo@example.com", "primary": True, "verified": True}])
        profile = _run(get_federated_profile(client, "github", {}))
        assert profile.display_name == "octo"
        assert profile.given_name is None
        assert profile.family_name is None

    def test_unverified_primary_email_is_rejected(self) -> None:
        client = _FakeGitHub({"login": "octo"}, [{"email": "octo@example.com", "primary": True, "verified": False}])
        with pytest.raises(ValueError):
            _run(get_federated_profile(client, "github", {}))


class TestOidcProfile:
    def test_verified_email(self) -> None:
        token = {
            "userinfo": {
                "email": "gina@example.com",
                "email_verified": True,
                "name": "Gina Ro",
                "given_name": "Gina",
                "family_name": "Ro",
                "picture": "https://img.example.com/gina.png",
            }
        }
        profile = _run(get_federated_profile(None, "google", token))
        assert profile.email == "gina@example.com"
        assert profile.given_name == "Gina"
        assert profile.picture_url == "https://img.example.com/gina.png"

    @pytest.mark.parametrize(
        "userinfo",
        [
            {"email": "gina@example.com"},
            {"email": "gina@example.com", "email_verified": False},
            {"email_verified": True},
            None,
        ],
    )
    def test_unverified_or_missing_email_is_rejected(self, userinfo) -> None:
        with pytest.raises(ValueError):
            _run(get_federated_profile(None, "google", {"userinfo": userinfo}))


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValueError):
        _run(get_federated_profile(None, "myspace", {}))


def test_no_providers_without_credentials() -> None:
    assert get_enabled_providers() == []
