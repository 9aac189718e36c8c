"""
tests/test_forms.py -- Unit tests for auth/forms.py.

Coverage:
  - Required-field messages, including fields missing from the submission
  - Email format and password length rules
  - One message per field, first violation wins
  - Whitespace stripping (names and email only) and extra-field handling
"""

from __future__ import annotations

from auth.forms import (
    VALIDATION_SUMMARY,
    AddUserForm,
    SignInForm,
    SignUpForm,
    UpdateUserForm,
    parse_form,
)
from auth.models import AuthFailure, FailureKind


def test_empty_sign_up_reports_every_field() -> None:
    result = parse_form(SignUpForm, {})
    assert isinstance(result, AuthFailure)
    assert result.kind is FailureKind.VALIDATION_FAILED
    assert result.message == VALIDATION_SUMMARY
    assert result.field_errors == {
        "first_name": "First name is required",
        "last_name": "Last name is required",
        "email": "Email address is required",
        "password": "Password is required",
    }


def test_invalid_email_and_short_password() -> None:
    result = parse_form(SignInForm, {"email": "not-an-email", "password": "abc"})
    assert result.field_errors == {
        "email": "Invalid email address",
        "password": "Password must be at least 6 characters",
    }


def test_required_wins_over_format() -> None:
    result = parse_form(SignInForm, {"email": "   ", "password": ""})
    assert result.field_errors["email"] == "Email address is required"
    assert result.field_errors["password"] == "Password is required"


def test_password_over_72_bytes_is_rejected() -> None:
    result = parse_form(SignInForm, {"email": "ann@example.com", "password": "é" * 40})
    assert result.field_errors == {"password": "Password must be at most 72 bytes"}


def test_wrong_type_reports_one_message() -> None:
    result = parse_form(SignInForm, {"email": 123, "password": "secret1"})
    assert list(result.field_errors) == ["email"]


def test_valid_submission_is_stripped() -> None:
    form = parse_form(SignUpForm, {"first_name": " Ann ", "last_name": "Lee", "email": " ann@example.com ", "password": "secret1"})
    assert isinstance(form, SignUpForm)
    assert form.first_name == "Ann"
    assert form.email == "ann@example.com"


def test_password_keeps_surrounding_whitespace() -> None:
    form = parse_form(SignInForm, {"email": " ann@example.com", "password": " secret1 "})
    assert isinstance(form, SignInForm)
    assert form.email == "ann@example.com"
    assert form.password == " secret1 "


def test_extra_fields_are_ignored() -> None:
    form = parse_form(SignInForm, {"email": "ann@example.com", "password": "secret1", "csrf": "x"})
    assert isinstance(form, SignInForm)


def test_add_user_form_accepts_admin_flag() -> None:
    form = parse_form(
        AddUserForm,
        {"first_name": "A", "last_name": "B", "email": "a@example.com", "password": "secret1", "is_admin": "true"},
    )
    assert form.is_admin is True


def test_update_form_allows_blank_password() -> None:
    form = parse_form(UpdateUserForm, {"first_name": "A", "last_name": "B", "email": "a@example.com"})
    assert isinstance(form, UpdateUserForm)
    assert form.password == ""
    assert form.is_admin is None
    assert form.is_active is None


def test_update_form_checks_non_blank_password() -> None:
    result = parse_form(UpdateUserForm, {"first_name": "A", "last_name": "B", "email": "a@example.com", "password": "abc"})
    assert result.field_errors == {"password": "Password must be at least 6 characters"}
