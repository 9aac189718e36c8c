"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper. IdentityStore is the repository;
_row_to_identity is the mapper. Policy and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database. The reconciliation policy does a
  lookup followed by a conditional write, so two concurrent first-time
  sign-ins for the same email can both pass the lookup. The unique index makes
  the second INSERT fail with IntegrityError; callers treat that as "identity
  already exists" and re-run their lookup.

  claim_provider() only writes when provider IS NULL, so a concurrent claim by
  another provider cannot be overwritten.

Lifecycle: one IdentityStore is built at process start (api/main.py lifespan)
and closed at shutdown. Nothing reaches the engine through module globals.

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Identity

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text),  # NULL for federated identities
    Column("provider", String(30)),  # NULL = unset, distinct from "credentials"
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("image", Text),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("email_verified", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Columns update_identity() accepts. id, email_verified and the timestamps are
# owned by the store.
_MUTABLE_FIELDS = {
    "email",
    "password_hash",
    "provider",
    "first_name",
    "last_name",
    "display_name",
    "image",
    "is_admin",
    "is_active",
}


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore the request.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore("sqlite:///admindesk.db")
        identity = store.create_identity(Identity(email="ann@example.com", ...))
        found = store.find_by_email("ann@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Identity | None:
        """Look up an identity by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_identities(self) -> list[Identity]:
        """Return all identities ordered by last name, then first name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _identities.select().order_by(_identities.c.last_name, _identities.c.first_name)
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    def has_identities(self) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_identities)).scalar()
        return (count or 0) > 0

    def count_active_admins(self) -> int:
        """Return the number of active admin identities.

        Used by the user management routes to refuse removing the last admin.
        """
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_identities)
                .where((_identities.c.is_admin == 1) & (_identities.c.is_active == 1))
            ).scalar()
        return count or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_identity(self, identity: Identity) -> Identity:
        """Insert a new identity and return it as stored.

        Assigns an opaque id and both timestamps. Raises
        sqlalchemy.exc.IntegrityError if the email already exists; the insert
        is a single statement, so a failed or cancelled call leaves no row.
        """
        now = _now_iso()
        identity_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _identities.insert().values(
                    id=identity_id,
                    email=identity.email,
                    password_hash=identity.password_hash,
                    provider=identity.provider,
                    first_name=identity.first_name,
                    last_name=identity.last_name,
                    display_name=identity.display_name,
                    image=identity.image,
                    is_admin=1 if identity.is_admin else 0,
                    is_active=1 if identity.is_active else 0,
                    email_verified=identity.email_verified,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        created = self.get_by_id(identity_id)
        if created is None:
            raise RuntimeError(f"Identity {identity_id} missing after insert")
        return created

    def update_identity(self, identity_id: str, **fields) -> Identity | None:
        """Update mutable fields on an existing identity.

        is_admin / is_active must be passed as bool; converted to int here.
        Unknown field names raise ValueError rather than being ignored.
        Raises IntegrityError if a changed email collides with another record.

        Returns the updated identity, or None if identity_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)!r}")
        for flag in ("is_admin", "is_active"):
            if flag in fields:
                fields[flag] = 1 if fields[flag] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_identities.update().where(_identities.c.id == identity_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_by_id(identity_id)

    def claim_provider(self, identity_id: str, provider: str) -> bool:
        """Set provider on an identity whose provider is still unset.

        The IS NULL condition makes the claim atomic: of two concurrent claims
        only one updates a row. Returns True if this call set the provider.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where((_identities.c.id == identity_id) & (_identities.c.provider.is_(None)))
                .values(provider=provider, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_identity(self, identity_id: str) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found.

        Callers check the last-admin and self-deletion rules before calling.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_identities.delete().where(_identities.c.id == identity_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        provider=row.provider,
        first_name=row.first_name,
        last_name=row.last_name,
        display_name=row.display_name,
        image=row.image,
        is_admin=bool(row.is_admin),
        is_active=bool(row.is_active),
        email_verified=row.email_verified,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
