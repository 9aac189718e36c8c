"""
auth/forms.py -- Typed, validated inputs for every identity operation.

Each operation gets one Pydantic v2 model. Raw submissions (JSON bodies or
form posts) are validated once here; the policy in auth/service.py only ever
sees a fully populated model and never branches on missing or mistyped fields.

Error messages are user-facing. Each field reports only its first violation:
validators check "required" before format or length, and parse_form() keeps
the first message per field if Pydantic reports more than one.

Missing fields default to "" so an absent field reports "... is required"
rather than Pydantic's generic "Field required".

Layer rule: no imports from api/, web/, or catalog/.
"""

from __future__ import annotations

from typing import TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from auth.models import AuthFailure, FailureKind

MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes and bcrypt >= 5 rejects longer input.
MAX_PASSWORD_BYTES = 72

VALIDATION_SUMMARY = "Validation failed. Required fields are missing or invalid."

_FormT = TypeVar("_FormT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Field checks shared by the models
# ---------------------------------------------------------------------------


def _require(value: str, label: str) -> str:
    if not value:
        raise PydanticCustomError("required", f"{label} is required")
    return value


def _check_email(value: str) -> str:
    value = _require(value.strip(), "Email address")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise PydanticCustomError("invalid_email", "Invalid email address") from None
    return value


def _check_password(value: str) -> str:
    _require(value, "Password")
    if len(value) < MIN_PASSWORD_LENGTH:
        raise PydanticCustomError("too_short", f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PydanticCustomError("too_long", f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class _Form(BaseModel):
    # Names and email are stripped by their validators. Passwords are kept
    # exactly as typed.
    # validate_default makes an omitted field run its "required" check.
    model_config = ConfigDict(extra="ignore", validate_default=True)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class SignInForm(_Form):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def password_valid(cls, value: str) -> str:
        return _check_password(value)


class SignUpForm(_Form):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""

    @field_validator("first_name")
    @classmethod
    def first_name_present(cls, value: str) -> str:
        return _require(value.strip(), "First name")

    @field_validator("last_name")
    @classmethod
    def last_name_present(cls, value: str) -> str:
        return _require(value.strip(), "Last name")

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def password_valid(cls, value: str) -> str:
        return _check_password(value)


class AddUserForm(SignUpForm):
    """Administrative "add user": a sign-up plus the admin flag."""

    is_admin: bool = False


class UpdateUserForm(_Form):
    """Profile update. A blank password leaves the stored hash unchanged.

    is_admin / is_active are None when the caller does not submit them; only
    administrators may set them (enforced by the route, not here).
    """

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    is_admin: bool | None = None
    is_active: bool | None = None

    @field_validator("first_name")
    @classmethod
    def first_name_present(cls, value: str) -> str:
        return _require(value.strip(), "First name")

    @field_validator("last_name")
    @classmethod
    def last_name_present(cls, value: str) -> str:
        return _require(value.strip(), "Last name")

    @field_validator("email")
    @classmethod
    def email_valid(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def password_valid(cls, value: str) -> str:
        if not value:
            return value
        return _check_password(value)


# ---------------------------------------------------------------------------
# Boundary helper
# ---------------------------------------------------------------------------


def collect_field_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten a ValidationError into {field: first message}."""
    field_errors: dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("",)
        name = str(loc[0])
        if name and name not in field_errors:
            field_errors[name] = error["msg"]
    return field_errors


def parse_form(model: type[_FormT], data: dict) -> _FormT | AuthFailure:
    """Validate a raw submission into a typed form.

    Returns the model instance, or AuthFailure(kind=VALIDATION_FAILED) with a
    per-field message map. Never raises for invalid input.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        return AuthFailure(
            kind=FailureKind.VALIDATION_FAILED,
            message=VALIDATION_SUMMARY,
            field_errors=collect_field_errors(exc),
        )
