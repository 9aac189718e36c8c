"""
catalog/store.py -- SQLAlchemy-backed persistence for categories and statuses.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. CatalogStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Names are unique per table (UNIQUE index). Inserts and renames that collide
raise sqlalchemy.exc.IntegrityError; routes report that on the name field.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CatalogStore("sqlite:///admindesk.db")
    category_id = store.create_category(Category(category_name="Shoes"))
    store.update_category(category_id, description="All footwear")
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from catalog.models import Category, Status

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category_name", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=False, server_default=""),
    Column("parent_category_id", Integer),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_statuses = Table(
    "statuses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("status_name", String(255), nullable=False, unique=True),
    Column("type_id", Integer, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_CATEGORY_FIELDS = {"category_name", "description", "parent_category_id", "is_active"}
_STATUS_FIELDS = {"status_name", "type_id", "description", "is_active"}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _prepare_update(fields: dict, allowed: set) -> dict:
    """Validate field names and convert is_active to int for storage."""
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)!r}")
    if "is_active" in fields:
        fields["is_active"] = 1 if fields["is_active"] else 0
    fields["updated_at"] = _now_iso()
    return fields


class CatalogStore:
    """Repository for Category and Status records."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, category: Category) -> int:
        """Insert a category and return its id. Raises IntegrityError on a duplicate name."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _categories.insert().values(
                    category_name=category.category_name,
                    description=category.description,
                    parent_category_id=category.parent_category_id,
                    is_active=1 if category.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_category(self, category_id: int) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.id == category_id)).fetchone()
        return _row_to_category(row) if row is not None else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.category_name == name)).fetchone()
        return _row_to_category(row) if row is not None else None

    def ancestor_ids(self, category_id: int) -> list[int]:
        """Return the ids of category_id and every category above it, nearest first.

        Stops at the first repeated id, so a corrupt chain cannot loop forever.
        """
        chain: list[int] = []
        current: Optional[int] = category_id
        with self.engine.connect() as conn:
            while current is not None and current not in chain:
                row = conn.execute(
                    select(_categories.c.parent_category_id).where(_categories.c.id == current)
                ).fetchone()
                if row is None:
                    break
                chain.append(current)
                current = row[0]
        return chain

    def list_categories(self) -> list[Category]:
        """Return all categories ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(_categories.select().order_by(_categories.c.category_name)).fetchall()
        return [_row_to_category(r) for r in rows]

    def update_category(self, category_id: int, **fields) -> bool:
        """Update mutable category fields. Returns False if category_id was not found."""
        values = _prepare_update(fields, _CATEGORY_FIELDS)
        with self.engine.connect() as conn:
            result = conn.execute(_categories.update().where(_categories.c.id == category_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_category(self, category_id: int) -> bool:
        """Delete a category. Child categories have their parent id cleared."""
        with self.engine.connect() as conn:
            result = conn.execute(_categories.delete().where(_categories.c.id == category_id))
            if result.rowcount > 0:
                conn.execute(
                    _categories.update()
                    .where(_categories.c.parent_category_id == category_id)
                    .values(parent_category_id=None, updated_at=_now_iso())
                )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Statuses
    # ------------------------------------------------------------------

    def create_status(self, status: Status) -> int:
        """Insert a status and return its id. Raises IntegrityError on a duplicate name."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _statuses.insert().values(
                    status_name=status.status_name,
                    type_id=status.type_id,
                    description=status.description,
                    is_active=1 if status.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_status(self, status_id: int) -> Optional[Status]:
        with self.engine.connect() as conn:
            row = conn.execute(_statuses.select().where(_statuses.c.id == status_id)).fetchone()
        return _row_to_status(row) if row is not None else None

    def get_status_by_name(self, name: str) -> Optional[Status]:
        with self.engine.connect() as conn:
            row = conn.execute(_statuses.select().where(_statuses.c.status_name == name)).fetchone()
        return _row_to_status(row) if row is not None else None

    def list_statuses(self) -> list[Status]:
        """Return all statuses ordered by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(_statuses.select().order_by(_statuses.c.status_name)).fetchall()
        return [_row_to_status(r) for r in rows]

    def update_status(self, status_id: int, **fields) -> bool:
        values = _prepare_update(fields, _STATUS_FIELDS)
        with self.engine.connect() as conn:
            result = conn.execute(_statuses.update().where(_statuses.c.id == status_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_status(self, status_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_statuses.delete().where(_statuses.c.id == status_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_category(row) -> Category:
    return Category(
        id=row.id,
        category_name=row.category_name,
        description=row.description or "",
        parent_category_id=row.parent_category_id,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_status(row) -> Status:
    return Status(
        id=row.id,
        status_name=row.status_name,
        type_id=row.type_id,
        description=row.description or "",
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
