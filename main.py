#!/usr/bin/env python3
"""
AdminDesk operator commands.

Usage:
  python main.py create-admin --email admin@example.com --first-name Ann --last-name Admin
  python main.py seed users.json
  python main.py seed users.json --database-url sqlite:///other.db

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the identity database (default: admindesk.db)
  DEBUG         Set to true to run without a SECRET_KEY

Seed file format: a JSON list of objects with first_name, last_name, email,
password and optional is_admin. Emails that already exist are skipped.
"""

import argparse
import getpass
import json
from pathlib import Path
from typing import Optional

from auth.forms import AddUserForm, parse_form
from auth.models import AuthFailure, FailureKind
from auth.service import register_with_password
from auth.store import IdentityStore
from core.config import get_settings


def _load_seed_file(path: str) -> list[dict]:
    """Read seed records from a JSON file. Returns [] if the file is unusable.

    Resolves symlinks and verifies the path is a regular file before reading.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{path}' is not a readable file.")
        return []
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"  [!] Could not read seed file '{path}': {e}")
        return []
    if not isinstance(data, list):
        print(f"  [!] Seed file '{path}' must contain a JSON list of users.")
        return []
    return [record for record in data if isinstance(record, dict)]


def create_admin(store: IdentityStore, email: str, first_name: str, last_name: str, password: str) -> bool:
    """Create a credentials identity with admin rights. Returns True on success."""
    form = parse_form(
        AddUserForm,
        {"email": email, "first_name": first_name, "last_name": last_name, "password": password, "is_admin": True},
    )
    if isinstance(form, AuthFailure):
        for field, message in form.field_errors.items():
            print(f"  [!] {field}: {message}")
        return False

    result = register_with_password(store, form)
    if isinstance(result, AuthFailure):
        print(f"  [!] {result.message}")
        return False
    print(f"  Created admin {result.email} ({result.id})")
    return True


def seed_users(store: IdentityStore, records: list[dict]) -> tuple[int, int, int]:
    """Create credentials identities from seed records.

    Returns (created, skipped, failed). A record whose email already exists
    counts as skipped, not failed.
    """
    created = skipped = failed = 0
    for record in records:
        form = parse_form(AddUserForm, record)
        if isinstance(form, AuthFailure):
            failed += 1
            print(f"  [!] Invalid record {record.get('email', '<no email>')!r}: {form.field_errors}")
            continue
        result = register_with_password(store, form)
        if isinstance(result, AuthFailure):
            if result.kind is FailureKind.ALREADY_EXISTS:
                skipped += 1
                print(f"  {form.email} exists, skipped")
            else:
                failed += 1
                print(f"  [!] {form.email}: {result.message}")
            continue
        created += 1
        print(f"  {form.email} created")
    return created, skipped, failed


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="admindesk",
        description="AdminDesk operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@example.com --first-name Ann --last-name Admin
  python main.py seed users.json
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command")

    admin_parser = sub.add_parser("create-admin", help="Create an administrator with a password")
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--first-name", required=True)
    admin_parser.add_argument("--last-name", required=True)

    seed_parser = sub.add_parser("seed", help="Create users from a JSON seed file")
    seed_parser.add_argument("file", metavar="FILE", help="Path to a JSON list of users")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    store = IdentityStore(args.database_url or get_settings().database_url)
    try:
        if args.command == "create-admin":
            password = getpass.getpass("Password: ")
            if password != getpass.getpass("Confirm password: "):
                print("  [!] Passwords do not match.")
                raise SystemExit(1)
            if not create_admin(store, args.email, args.first_name, args.last_name, password):
                raise SystemExit(1)
        else:
            records = _load_seed_file(args.file)
            if not records:
                raise SystemExit(1)
            created, skipped, failed = seed_users(store, records)
            print(f"\n  {created} created, {skipped} skipped, {failed} failed.")
            if failed:
                raise SystemExit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
