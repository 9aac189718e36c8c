"""
tests/test_catalog_store.py -- Unit tests for catalog/store.py.

Coverage:
  - Category and status create/get/list/update/delete
  - UNIQUE names raise IntegrityError
  - Deleting a parent category clears its children's parent id
  - Parent chain walk, including a corrupt loop
  - Update field whitelist
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from catalog.models import Category, Status


class TestCategories:
    def test_create_and_get(self, catalog) -> None:
        cid = catalog.create_category(Category(category_name="Shoes", description="Footwear"))
        category = catalog.get_category(cid)
        assert category.category_name == "Shoes"
        assert category.description == "Footwear"
        assert category.is_active is True
        assert category.created_at
        assert catalog.get_category_by_name("Shoes") == category

    def test_duplicate_name(self, catalog) -> None:
        catalog.create_category(Category(category_name="Hats"))
        with pytest.raises(IntegrityError):
            catalog.create_category(Category(category_name="Hats"))

    def test_list_is_ordered_by_name(self, catalog) -> None:
        for name in ("Zips", "Bags", "Maps"):
            catalog.create_category(Category(category_name=name))
        assert [c.category_name for c in catalog.list_categories()] == ["Bags", "Maps", "Zips"]

    def test_update(self, catalog) -> None:
        cid = catalog.create_category(Category(category_name="Socks"))
        assert catalog.update_category(cid, description="Warm", is_active=False) is True
        category = catalog.get_category(cid)
        assert category.description == "Warm"
        assert category.is_active is False
        assert catalog.update_category(9999, description="x") is False

    def test_update_rejects_unknown_field(self, catalog) -> None:
        cid = catalog.create_category(Category(category_name="Belts"))
        with pytest.raises(ValueError):
            catalog.update_category(cid, id=5)

    def test_ancestor_ids_walks_to_the_root(self, catalog) -> None:
        root = catalog.create_category(Category(category_name="Home"))
        mid = catalog.create_category(Category(category_name="Kitchen", parent_category_id=root))
        leaf = catalog.create_category(Category(category_name="Knives", parent_category_id=mid))
        assert catalog.ancestor_ids(leaf) == [leaf, mid, root]
        assert catalog.ancestor_ids(root) == [root]
        assert catalog.ancestor_ids(9999) == []

    def test_ancestor_ids_stops_on_a_loop(self, catalog) -> None:
        a = catalog.create_category(Category(category_name="Loop A"))
        b = catalog.create_category(Category(category_name="Loop B", parent_category_id=a))
        catalog.update_category(a, parent_category_id=b)
        assert catalog.ancestor_ids(a) == [a, b]

    def test_delete_parent_clears_children(self, catalog) -> None:
        parent = catalog.create_category(Category(category_name="Clothing"))
        child = catalog.create_category(Category(category_name="Shirts", parent_category_id=parent))
        assert catalog.delete_category(parent) is True
        assert catalog.get_category(parent) is None
        assert catalog.get_category(child).parent_category_id is None
        assert catalog.delete_category(parent) is False


class TestStatuses:
    def test_crud(self, catalog) -> None:
        sid = catalog.create_status(Status(status_name="Pending", type_id=1))
        status = catalog.get_status(sid)
        assert status.type_id == 1
        assert catalog.get_status_by_name("Pending") == status

        catalog.update_status(sid, status_name="Waiting", type_id=2)
        assert catalog.get_status(sid).status_name == "Waiting"
        assert catalog.get_status(sid).type_id == 2

        assert catalog.delete_status(sid) is True
        assert catalog.get_status(sid) is None

    def test_duplicate_name(self, catalog) -> None:
        catalog.create_status(Status(status_name="Done", type_id=1))
        with pytest.raises(IntegrityError):
            catalog.create_status(Status(status_name="Done", type_id=2))

    def test_list_is_ordered_by_name(self, catalog) -> None:
        catalog.create_status(Status(status_name="Shipped", type_id=1))
        catalog.create_status(Status(status_name="Cancelled", type_id=1))
        assert [s.status_name for s in catalog.list_statuses()] == ["Cancelled", "Shipped"]
