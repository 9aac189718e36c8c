"""
tests/test_cli.py -- Tests for the operator commands in main.py.

Coverage:
  - create_admin(): creates an admin, reports validation problems
  - seed_users(): creates, skips existing emails, counts invalid records
  - main(): create-admin with prompted password, seed from a JSON file,
    unreadable seed file exits non-zero
"""

from __future__ import annotations

import json
import uuid

import pytest

import main as cli
from auth.store import IdentityStore
from conftest import memory_url


def test_create_admin(store, capsys) -> None:
    assert cli.create_admin(store, "root@example.com", "Root", "User", "secret1") is True
    identity = store.find_by_email("root@example.com")
    assert identity.is_admin is True
    assert identity.provider == "credentials"
    assert "Created admin root@example.com" in capsys.readouterr().out


def test_create_admin_rejects_short_password(store, capsys) -> None:
    assert cli.create_admin(store, "root@example.com", "Root", "User", "123") is False
    assert store.find_by_email("root@example.com") is None
    assert "password" in capsys.readouterr().out


def test_seed_users_counts(store) -> None:
    cli.create_admin(store, "exists@example.com", "Ex", "Ists", "secret1")
    records = [
        {"first_name": "A", "last_name": "One", "email": "a@example.com", "password": "secret1"},
        {"first_name": "B", "last_name": "Two", "email": "b@example.com", "password": "secret1", "is_admin": True},
        {"first_name": "E", "last_name": "X", "email": "exists@example.com", "password": "secret1"},
        {"first_name": "", "last_name": "Bad", "email": "bad", "password": "x"},
    ]
    assert cli.seed_users(store, records) == (2, 1, 1)
    assert store.find_by_email("b@example.com").is_admin is True
    assert store.find_by_email("a@example.com").is_admin is False


def test_main_create_admin_prompts_for_password(monkeypatch) -> None:
    url = memory_url(f"cli_{uuid.uuid4().hex}")
    keep_alive = IdentityStore(url)
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": "secret1")
    cli.main(["--database-url", url, "create-admin", "--email", "ops@example.com", "--first-name", "Op", "--last-name", "S"])
    assert keep_alive.find_by_email("ops@example.com").is_admin is True
    keep_alive.close()


def test_main_create_admin_password_mismatch(monkeypatch) -> None:
    answers = iter(["secret1", "secret2"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": next(answers))
    url = memory_url(f"cli_{uuid.uuid4().hex}")
    with pytest.raises(SystemExit):
        cli.main(["--database-url", url, "create-admin", "--email", "x@example.com", "--first-name", "X", "--last-name", "Y"])


def test_main_seed_from_file(tmp_path) -> None:
    url = memory_url(f"cli_{uuid.uuid4().hex}")
    keep_alive = IdentityStore(url)
    seed = tmp_path / "users.json"
    seed.write_text(
        json.dumps([{"first_name": "S", "last_name": "Eed", "email": "seed@example.com", "password": "secret1"}])
    )
    cli.main(["--database-url", url, "seed", str(seed)])
    assert keep_alive.find_by_email("seed@example.com") is not None
    keep_alive.close()


def test_main_seed_missing_file_exits(tmp_path) -> None:
    url = memory_url(f"cli_{uuid.uuid4().hex}")
    with pytest.raises(SystemExit):
        cli.main(["--database-url", url, "seed", str(tmp_path / "missing.json")])
