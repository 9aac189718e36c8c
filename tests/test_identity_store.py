"""
tests/test_identity_store.py -- Unit tests for auth/store.py.

Coverage:
  - create/find/get round trip, assigned id and timestamps
  - UNIQUE(email): a second insert raises IntegrityError and leaves one row
  - update_identity(): field whitelist, bool conversion, missing id
  - claim_provider(): only claims an unset provider, once
  - list ordering, admin counting, delete, ping
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Identity


def _identity(email: str, first: str = "Ann", last: str = "Lee", **extra) -> Identity:
    return Identity(email=email, first_name=first, last_name=last, display_name=f"{first} {last}", **extra)


def test_create_assigns_id_and_timestamps(store) -> None:
    created = store.create_identity(_identity("ann@example.com", provider="credentials", password_hash="h"))
    assert created.id
    assert created.created_at and created.updated_at
    assert store.find_by_email("ann@example.com") == created
    assert store.get_by_id(created.id) == created


def test_email_lookup_is_exact(store) -> None:
    store.create_identity(_identity("ann@example.com"))
    assert store.find_by_email("Ann@Example.com") is None
    assert store.find_by_email("missing@example.com") is None


def test_duplicate_email_raises_integrity_error(store) -> None:
    store.create_identity(_identity("ann@example.com"))
    with pytest.raises(IntegrityError):
        store.create_identity(_identity("ann@example.com", first="Other"))
    assert len(store.list_identities()) == 1


def test_update_converts_flags_and_bumps_updated_at(store) -> None:
    created = store.create_identity(_identity("bob@example.com"))
    updated = store.update_identity(created.id, is_admin=True, is_active=False, first_name="Robert")
    assert updated.is_admin is True
    assert updated.is_active is False
    assert updated.first_name == "Robert"
    assert updated.updated_at >= created.updated_at


def test_update_rejects_unknown_fields(store) -> None:
    created = store.create_identity(_identity("bob@example.com"))
    with pytest.raises(ValueError):
        store.update_identity(created.id, created_at="1999-01-01")


def test_update_missing_identity_returns_none(store) -> None:
    assert store.update_identity("nope", first_name="X") is None


def test_update_to_taken_email_raises(store) -> None:
    store.create_identity(_identity("a@example.com"))
    b = store.create_identity(_identity("b@example.com"))
    with pytest.raises(IntegrityError):
        store.update_identity(b.id, email="a@example.com")


def test_claim_provider_only_when_unset(store) -> None:
    created = store.create_identity(_identity("carol@example.com"))
    assert store.claim_provider(created.id, "google") is True
    assert store.claim_provider(created.id, "github") is False
    assert store.get_by_id(created.id).provider == "google"


def test_list_orders_by_last_then_first_name(store) -> None:
    store.create_identity(_identity("z@example.com", first="Zed", last="Adams"))
    store.create_identity(_identity("b@example.com", first="Bea", last="Young"))
    store.create_identity(_identity("a@example.com", first="Al", last="Adams"))
    names = [(i.last_name, i.first_name) for i in store.list_identities()]
    assert names == [("Adams", "Al"), ("Adams", "Zed"), ("Young", "Bea")]


def test_count_active_admins(store) -> None:
    assert store.has_identities() is False
    store.create_identity(_identity("a@example.com", is_admin=True))
    store.create_identity(_identity("b@example.com", is_admin=True, is_active=False))
    store.create_identity(_identity("c@example.com"))
    assert store.has_identities() is True
    assert store.count_active_admins() == 1


def test_delete(store) -> None:
    created = store.create_identity(_identity("dan@example.com"))
    assert store.delete_identity(created.id) is True
    assert store.delete_identity(created.id) is False
    assert store.get_by_id(created.id) is None


def test_ping(store) -> None:
    assert store.ping() is True
