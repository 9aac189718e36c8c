"""
API request and response models for AdminDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Identity forms (sign-in, sign-up, add/update user) are NOT declared here:
they are validated by auth/forms.py so the API and the browser form posts
share one set of rules and messages.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from auth.models import Identity, SessionClaims
from catalog.models import Category, Status

# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields maps a form field to its first validation message, when the error
    concerns specific inputs.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Session-visible identity fields, as rehydrated from the token."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    is_admin: Optional[bool]
    display_name: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    picture_url: Optional[str]

    @classmethod
    def from_claims(cls, claims: SessionClaims) -> "SessionResponse":
        return cls(
            subject_id=claims.subject_id,
            is_admin=claims.is_admin,
            display_name=claims.display_name,
            first_name=claims.first_name,
            last_name=claims.last_name,
            picture_url=claims.picture_url,
        )


class SignInResponse(BaseModel):
    """Response for POST /api/v1/auth/signin."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    session: SessionResponse


class ProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


class IdentityResponse(BaseModel):
    """An identity as shown to administrators. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    display_name: str
    provider: Optional[str]
    image: Optional[str]
    is_admin: bool
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id or "",
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            display_name=identity.display_name,
            provider=identity.provider,
            image=identity.image,
            is_admin=identity.is_admin,
            is_active=identity.is_active,
            created_at=identity.created_at or "",
            updated_at=identity.updated_at or "",
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def _required(value: str, label: str) -> str:
    if not value:
        raise PydanticCustomError("required", f"{label} is required")
    return value


class CategoryCreate(BaseModel):
    """Request body for POST /api/v1/categories."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    category_name: str = Field(default="", max_length=255)
    description: str = Field(default="", max_length=1000)
    parent_category_id: Optional[int] = None
    is_active: bool = True

    @field_validator("category_name")
    @classmethod
    def name_present(cls, value: str) -> str:
        return _required(value, "Category name")


class CategoryUpdate(CategoryCreate):
    """Request body for PUT /api/v1/categories/{id}. Same fields as create."""


class CategoryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    category_name: str
    description: str
    parent_category_id: Optional[int]
    parent_category_name: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_category(cls, category: Category, parent_name: Optional[str] = None) -> "CategoryResponse":
        return cls(
            id=category.id,
            category_name=category.category_name,
            description=category.description,
            parent_category_id=category.parent_category_id,
            parent_category_name=parent_name,
            is_active=category.is_active,
            created_at=category.created_at,
            updated_at=category.updated_at,
        )


class StatusCreate(BaseModel):
    """Request body for POST /api/v1/statuses."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    status_name: str = Field(default="", max_length=255)
    type_id: Optional[int] = None
    description: str = Field(default="", max_length=1000)
    is_active: bool = True

    @field_validator("status_name")
    @classmethod
    def name_present(cls, value: str) -> str:
        return _required(value, "Status name")

    @field_validator("type_id")
    @classmethod
    def type_present(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            raise PydanticCustomError("required", "Type is required")
        return value


class StatusUpdate(StatusCreate):
    """Request body for PUT /api/v1/statuses/{id}. Same fields as create."""


class StatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    status_name: str
    type_id: int
    description: str
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_status(cls, status: Status) -> "StatusResponse":
        return cls(
            id=status.id,
            status_name=status.status_name,
            type_id=status.type_id,
            description=status.description,
            is_active=status.is_active,
            created_at=status.created_at,
            updated_at=status.updated_at,
        )
