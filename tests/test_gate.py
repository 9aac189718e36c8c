"""
tests/test_gate.py -- Unit tests for auth/gate.py.

Coverage:
  - Protected path matching against the default pattern list
  - authorize(): pass-through, session present, redirect with callbackUrl
  - safe_next(): open-redirect rejection
  - Per-resource checks: is_admin() strictness and can_manage_identity()
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from auth.gate import authorize, can_manage_identity, is_admin, is_protected_path, safe_next
from auth.models import SessionClaims


@pytest.mark.parametrize(
    "path",
    [
        "/admin",
        "/admin/users",
        "/profile",
        "/user/42",
        "/order/abc",
        "/shipping-address",
        "/payment-method",
        "/place-order",
    ],
)
def test_protected_paths(path: str) -> None:
    assert is_protected_path(path) is True


@pytest.mark.parametrize("path", ["/", "/signin", "/products/1", "/user", "/api/v1/health", "/cart"])
def test_unprotected_paths(path: str) -> None:
    assert is_protected_path(path) is False


class TestAuthorize:
    def test_unprotected_path_always_allowed(self) -> None:
        decision = authorize(False, "/products")
        assert decision.allowed is True
        assert decision.redirect_url is None

    def test_session_allows_protected_path(self) -> None:
        assert authorize(True, "/admin/users").allowed is True

    def test_protected_without_session_redirects_with_callback(self) -> None:
        decision = authorize(False, "/admin/users", "page=2")
        assert decision.allowed is False
        parsed = urlparse(decision.redirect_url)
        assert parsed.path == "/signin"
        assert parse_qs(parsed.query)["callbackUrl"] == ["/admin/users?page=2"]

    def test_callback_never_contains_a_host(self) -> None:
        decision = authorize(False, "/profile")
        callback = parse_qs(urlparse(decision.redirect_url).query)["callbackUrl"][0]
        assert callback == "/profile"


class TestSafeNext:
    @pytest.mark.parametrize("target", ["/admin", "/user/1?tab=orders"])
    def test_relative_paths_pass(self, target: str) -> None:
        assert safe_next(target) == target

    @pytest.mark.parametrize("target", [None, "", "https://evil.example.com", "//evil.example.com", "javascript:alert(1)"])
    def test_everything_else_falls_back_to_root(self, target) -> None:
        assert safe_next(target) == "/"


class TestResourceChecks:
    def test_is_admin_requires_boolean_true(self) -> None:
        assert is_admin(SessionClaims(subject_id="a", is_admin=True)) is True
        assert is_admin(SessionClaims(subject_id="a", is_admin=None)) is False
        assert is_admin(SessionClaims(subject_id="a", is_admin=False)) is False
        assert is_admin(None) is False

    def test_admin_may_manage_anyone(self) -> None:
        assert can_manage_identity(SessionClaims(subject_id="a", is_admin=True), "b") is True

    def test_owner_may_manage_self(self) -> None:
        assert can_manage_identity(SessionClaims(subject_id="a", is_admin=False), "a") is True

    def test_others_are_denied(self) -> None:
        assert can_manage_identity(SessionClaims(subject_id="a", is_admin=None), "b") is False
        assert can_manage_identity(None, "b") is False
