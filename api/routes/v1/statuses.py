"""
api/routes/v1/statuses.py -- Status management routes (admin only).

Routes:
  POST   /statuses        -- create
  GET    /statuses        -- list ordered by name
  GET    /statuses/{id}   -- detail
  PUT    /statuses/{id}   -- replace editable fields
  DELETE /statuses/{id}   -- delete
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.errors import field_conflict, not_found
from api.models import StatusCreate, StatusResponse, StatusUpdate
from auth.dependencies import require_admin
from catalog.models import Status
from catalog.store import CatalogStore

router = APIRouter(dependencies=[Depends(require_admin)])


def _duplicate_name() -> HTTPException:
    return field_conflict(
        "status_name",
        "A status with this name already exists.",
        "Status name must be unique.",
    )


@router.post("/statuses", response_model=StatusResponse, status_code=201)
def create_status(request: Request, body: StatusCreate) -> StatusResponse:
    catalog: CatalogStore = request.app.state.catalog
    if catalog.get_status_by_name(body.status_name) is not None:
        raise _duplicate_name()
    try:
        status_id = catalog.create_status(
            Status(
                status_name=body.status_name,
                type_id=body.type_id,
                description=body.description,
                is_active=body.is_active,
            )
        )
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    return StatusResponse.from_status(catalog.get_status(status_id))


@router.get("/statuses", response_model=list[StatusResponse])
def list_statuses(request: Request) -> list[StatusResponse]:
    catalog: CatalogStore = request.app.state.catalog
    return [StatusResponse.from_status(s) for s in catalog.list_statuses()]


@router.get("/statuses/{status_id}", response_model=StatusResponse)
def get_status(request: Request, status_id: int) -> StatusResponse:
    catalog: CatalogStore = request.app.state.catalog
    status = catalog.get_status(status_id)
    if status is None:
        raise not_found("Status not found.")
    return StatusResponse.from_status(status)


@router.put("/statuses/{status_id}", response_model=StatusResponse)
def update_status(request: Request, status_id: int, body: StatusUpdate) -> StatusResponse:
    catalog: CatalogStore = request.app.state.catalog
    if catalog.get_status(status_id) is None:
        raise not_found("Status not found.")
    existing = catalog.get_status_by_name(body.status_name)
    if existing is not None and existing.id != status_id:
        raise _duplicate_name()
    try:
        catalog.update_status(
            status_id,
            status_name=body.status_name,
            type_id=body.type_id,
            description=body.description,
            is_active=body.is_active,
        )
    except IntegrityError as exc:
        raise _duplicate_name() from exc
    return StatusResponse.from_status(catalog.get_status(status_id))


@router.delete("/statuses/{status_id}", status_code=204)
def delete_status(request: Request, status_id: int) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    if not catalog.delete_status(status_id):
        raise not_found("Status not found.")
    return Response(status_code=204)
