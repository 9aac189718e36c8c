"""
api/routes/v1/users.py -- Identity management REST endpoints.

Routes:
  GET    /api/v1/users        -- list identities (admin only)
  POST   /api/v1/users        -- add a credentials identity, optionally admin (admin only)
  GET    /api/v1/users/{id}   -- one identity (admin, or the identity itself)
  PATCH  /api/v1/users/{id}   -- update profile (admin, or the identity itself)
  DELETE /api/v1/users/{id}   -- delete (admin only)

Per-resource rule: can_manage_identity() allows admins and the owner. A
denied caller gets 403 access_denied, never a sign-in redirect -- they are
already signed in.

Admin guards:
  - Only admins may change is_admin / is_active.
  - An admin cannot deactivate or delete their own identity.
  - The last active admin cannot be deactivated, demoted, or deleted.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.errors import failure_response, not_found
from api.models import IdentityResponse
from auth.dependencies import get_current_session, require_admin
from auth.forms import AddUserForm, UpdateUserForm, parse_form
from auth.gate import can_manage_identity, is_admin
from auth.models import AuthFailure, Identity, SessionClaims
from auth.service import register_with_password, update_identity_profile
from auth.store import IdentityStore

router = APIRouter()


def _access_denied() -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={"code": "access_denied", "message": "You do not have permission to manage this user."},
    )


def _bad_request(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": code, "message": message})


def _load(store: IdentityStore, identity_id: str) -> Identity:
    identity = store.get_by_id(identity_id)
    if identity is None:
        raise not_found("User not found.")
    return identity


def _is_last_active_admin(store: IdentityStore, target: Identity) -> bool:
    return target.is_admin and target.is_active and store.count_active_admins() <= 1


# ---------------------------------------------------------------------------
# Admin-only collection routes
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[IdentityResponse])
def list_users(request: Request, claims: SessionClaims = Depends(require_admin)) -> list[IdentityResponse]:
    """List all identities ordered by last name, first name."""
    store: IdentityStore = request.app.state.identity_store
    return [IdentityResponse.from_identity(i) for i in store.list_identities()]


@router.post("/users", response_model=IdentityResponse, status_code=201)
def add_user(
    request: Request,
    body: dict = Body(...),
    claims: SessionClaims = Depends(require_admin),
) -> JSONResponse:
    """Create a credentials identity on someone's behalf. May grant admin."""
    form = parse_form(AddUserForm, body)
    if isinstance(form, AuthFailure):
        return failure_response(form)

    store: IdentityStore = request.app.state.identity_store
    result = register_with_password(store, form, is_admin=form.is_admin)
    if isinstance(result, AuthFailure):
        return failure_response(result)
    return JSONResponse(status_code=201, content=IdentityResponse.from_identity(result).model_dump())


# ---------------------------------------------------------------------------
# Per-identity routes
# ---------------------------------------------------------------------------


@router.get("/users/{identity_id}", response_model=IdentityResponse)
def get_user(
    request: Request,
    identity_id: str,
    claims: SessionClaims = Depends(get_current_session),
) -> IdentityResponse:
    if not can_manage_identity(claims, identity_id):
        raise _access_denied()
    store: IdentityStore = request.app.state.identity_store
    return IdentityResponse.from_identity(_load(store, identity_id))


@router.patch("/users/{identity_id}", response_model=IdentityResponse)
def update_user(
    request: Request,
    identity_id: str,
    body: dict = Body(...),
    claims: SessionClaims = Depends(get_current_session),
) -> JSONResponse:
    """Update a profile. Admins may also change is_admin and is_active."""
    if not can_manage_identity(claims, identity_id):
        raise _access_denied()

    form = parse_form(UpdateUserForm, body)
    if isinstance(form, AuthFailure):
        return failure_response(form)

    store: IdentityStore = request.app.state.identity_store
    target = _load(store, identity_id)
    caller_is_admin = is_admin(claims)

    changes_flags = (form.is_admin is not None and form.is_admin != target.is_admin) or (
        form.is_active is not None and form.is_active != target.is_active
    )
    if changes_flags and not caller_is_admin:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Only administrators can change roles or activation."},
        )

    if form.is_active is False and target.is_active:
        if target.id == claims.subject_id:
            raise _bad_request("self_deactivation", "You cannot deactivate your own account.")
        if _is_last_active_admin(store, target):
            raise _bad_request("last_admin", "Cannot deactivate the last active admin account.")
    if form.is_admin is False and _is_last_active_admin(store, target):
        raise _bad_request("last_admin", "Cannot remove admin rights from the last active admin account.")

    result = update_identity_profile(store, identity_id, form, allow_flags=caller_is_admin)
    if isinstance(result, AuthFailure):
        return failure_response(result)
    if result is None:
        raise not_found("User not found.")
    return JSONResponse(content=IdentityResponse.from_identity(result).model_dump())


@router.delete("/users/{identity_id}", status_code=204)
def delete_user(
    request: Request,
    identity_id: str,
    claims: SessionClaims = Depends(require_admin),
) -> Response:
    store: IdentityStore = request.app.state.identity_store
    target = _load(store, identity_id)
    if target.id == claims.subject_id:
        raise _bad_request("self_deletion", "You cannot delete your own account.")
    if _is_last_active_admin(store, target):
        raise _bad_request("last_admin", "Cannot delete the last active admin account.")
    if not store.delete_identity(identity_id):
        raise not_found("User not found.")
    return Response(status_code=204)
