"""
api/routes/v1/categories.py -- Category management routes (admin only).

Routes:
  POST   /categories        -- create
  GET    /categories        -- list ordered by name
  GET    /categories/{id}   -- detail
  PUT    /categories/{id}   -- replace editable fields
  DELETE /categories/{id}   -- delete; children lose their parent link

Category names are unique. The route checks first to give a field-level
message, and the UNIQUE index catches the race where two requests pass the
check together.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.errors import field_conflict, not_found
from api.models import CategoryCreate, CategoryResponse, CategoryUpdate, ErrorDetail
from auth.dependencies import require_admin
from catalog.models import Category
from catalog.store import CatalogStore

# Router-level dependency: every route here requires an admin session.
router = APIRouter(dependencies=[Depends(require_admin)])


def _duplicate_name() -> HTTPException:
    return field_conflict(
        "category_name",
        "A category with this name already exists.",
        "Category name must be unique.",
    )


def _invalid_parent(message: str) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=ErrorDetail(
            code="validation_failed",
            message="Validation failed. Required fields are missing or invalid.",
            fields={"parent_category_id": message},
        ).model_dump(),
    )


def _check_parent(catalog: CatalogStore, parent_id: Optional[int], own_id: Optional[int] = None) -> None:
    """Reject a missing parent, and any parent that is the category itself or sits below it."""
    if parent_id is None:
        return
    chain = catalog.ancestor_ids(parent_id)
    if not chain:
        raise _invalid_parent("Parent category not found")
    if own_id is not None and own_id in chain:
        raise _invalid_parent("A category cannot be nested under itself or its subcategories")


def _to_response(catalog: CatalogStore, category: Category) -> CategoryResponse:
    parent_name = None
    if category.parent_category_id is not None:
        parent = catalog.get_category(category.parent_category_id)
        parent_name = parent.category_name if parent else None
    return CategoryResponse.from_category(category, parent_name)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(request: Request, body: CategoryCreate) -> CategoryResponse:
    catalog: CatalogStore = request.app.state.catalog
    if catalog.get_category_by_name(body.category_name) is not None:
        raise _duplicate_name()
    _check_parent(catalog, body.parent_category_id)
    try:
        category_id = catalog.create_category(
            Category(
                category_name=body.category_name,
                description=body.description,
                parent_category_id=body.parent_category_id,
                is_active=body.is_active,
            )
        )
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    return _to_response(catalog, catalog.get_category(category_id))


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(request: Request) -> list[CategoryResponse]:
    catalog: CatalogStore = request.app.state.catalog
    categories = catalog.list_categories()
    names = {c.id: c.category_name for c in categories}
    return [CategoryResponse.from_category(c, names.get(c.parent_category_id)) for c in categories]


@router.get("/categories/{category_id}", response_model=CategoryResponse)
def get_category(request: Request, category_id: int) -> CategoryResponse:
    catalog: CatalogStore = request.app.state.catalog
    category = catalog.get_category(category_id)
    if category is None:
        raise not_found("Category not found.")
    return _to_response(catalog, category)


@router.put("/categories/{category_id}", response_model=CategoryResponse)
def update_category(request: Request, category_id: int, body: CategoryUpdate) -> CategoryResponse:
    catalog: CatalogStore = request.app.state.catalog
    if catalog.get_category(category_id) is None:
        raise not_found("Category not found.")
    existing = catalog.get_category_by_name(body.category_name)
    if existing is not None and existing.id != category_id:
        raise _duplicate_name()
    _check_parent(catalog, body.parent_category_id, own_id=category_id)
    try:
        catalog.update_category(
            category_id,
            category_name=body.category_name,
            description=body.description,
            parent_category_id=body.parent_category_id,
            is_active=body.is_active,
        )
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    return _to_response(catalog, catalog.get_category(category_id))


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(request: Request, category_id: int) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    if not catalog.delete_category(category_id):
        raise not_found("Category not found.")
    return Response(status_code=204)
