"""
catalog/models.py -- Domain dataclasses for AdminDesk reference data.

These are pure data containers with zero logic. Uniqueness and timestamps are
the store's concern (catalog/store.py).

Separation of concerns: the catalog knows nothing about identities; auth/ and
catalog/ never import each other.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Category:
    """A product or content category, optionally nested under a parent.

    id is None before the record is written to the database.
    """

    category_name: str
    description: str = ""
    parent_category_id: Optional[int] = None
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Status:
    """A workflow status. type_id groups statuses that apply to the same kind of record."""

    status_name: str
    type_id: int
    description: str = ""
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
