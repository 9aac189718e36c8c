"""
api/errors.py -- Map typed failures to the ErrorResponse envelope.

Route handlers receive AuthFailure values from auth/service.py and auth/forms.py
rather than exceptions. failure_response() is the single place that decides
the HTTP status for each failure kind, so every route reports the same kind
the same way.
"""

from __future__ import annotations

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.models import AuthFailure, FailureKind

_STATUS_BY_KIND: dict[FailureKind, int] = {
    FailureKind.VALIDATION_FAILED: 422,
    FailureKind.INVALID_CREDENTIALS: 401,
    FailureKind.PROVIDER_MISMATCH: 409,
    FailureKind.ALREADY_EXISTS: 409,
    FailureKind.DENIED: 403,
    FailureKind.ACCOUNT_DISABLED: 403,
    FailureKind.UNEXPECTED: 500,
}


def failure_response(failure: AuthFailure) -> JSONResponse:
    """Render an AuthFailure as a JSON error response.

    The provider tag, when present, goes in detail so clients can route the
    user to the right sign-in button without parsing the message.
    """
    resp = JSONResponse(
        status_code=_STATUS_BY_KIND[failure.kind],
        content=ErrorResponse(
            error=ErrorDetail(
                code=failure.kind.value,
                message=failure.message,
                detail=failure.provider,
                fields=failure.field_errors,
            )
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def field_conflict(field: str, message: str, field_message: str) -> HTTPException:
    """409 for a uniqueness conflict on one form field."""
    return HTTPException(
        status_code=409,
        detail=ErrorDetail(code="already_exists", message=message, fields={field: field_message}).model_dump(),
    )


def not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": message})
