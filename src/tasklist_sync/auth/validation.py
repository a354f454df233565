# src/tasklist_sync/auth/validation.py

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from ..core.errors import ValidationFailed

# Same shape as android.util.Patterns.EMAIL_ADDRESS.
EMAIL_REGEX = re.compile(
    r"[a-zA-Z0-9+._%\-]{1,256}"
    r"@"
    r"[a-zA-Z0-9][a-zA-Z0-9\-]{0,64}"
    r"(\.[a-zA-Z0-9][a-zA-Z0-9\-]{0,25})+"
)

MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3


class ValidationFailure(StrEnum):
    EMPTY = "Empty"
    MALFORMED = "Malformed"
    TOO_SHORT = "TooShort"
    MISMATCH = "Mismatch"


@dataclass(slots=True, frozen=True)
class ValidationResult:
    field: str
    failure: ValidationFailure | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    def raise_for_failure(self) -> None:
        if self.failure is not None:
            raise ValidationFailed(self.field, self.message)


def _pass(field: str) -> ValidationResult:
    return ValidationResult(field=field)


def _fail(field: str, failure: ValidationFailure, message: str) -> ValidationResult:
    return ValidationResult(field=field, failure=failure, message=message)


def _blank(s: str | None) -> bool:
    return not s or not s.strip()


def validate_email(s: str | None) -> ValidationResult:
    if _blank(s):
        return _fail("email", ValidationFailure.EMPTY, "Email is required")
    if not EMAIL_REGEX.fullmatch(s or ""):
        return _fail("email", ValidationFailure.MALFORMED, "Enter a valid email")
    return _pass("email")


def validate_password(s: str | None) -> ValidationResult:
    if _blank(s):
        return _fail("password", ValidationFailure.EMPTY, "Password is required")
    if len(s or "") < MIN_PASSWORD_LENGTH:
        return _fail(
            "password",
            ValidationFailure.TOO_SHORT,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    return _pass("password")


def validate_confirm_password(password: str | None, confirm: str | None) -> ValidationResult:
    if _blank(confirm):
        return _fail("confirm_password", ValidationFailure.EMPTY, "Please confirm your password")
    if (password or "") != confirm:
        return _fail("confirm_password", ValidationFailure.MISMATCH, "Passwords do not match")
    return _pass("confirm_password")


def validate_username(s: str | None) -> ValidationResult:
    if _blank(s):
        return _fail("username", ValidationFailure.EMPTY, "Username is required")
    if len(s or "") < MIN_USERNAME_LENGTH:
        return _fail(
            "username",
            ValidationFailure.TOO_SHORT,
            f"Username must be at least {MIN_USERNAME_LENGTH} characters",
        )
    return _pass("username")


def validate_task_title(s: str | None) -> ValidationResult:
    if _blank(s):
        return _fail("title", ValidationFailure.EMPTY, "Please enter task title")
    return _pass("title")


def _first_failure(*checks: ValidationResult) -> ValidationResult:
    for check in checks:
        if not check.ok:
            return check
    return _pass("form")


def validate_login_form(email: str, password: str) -> ValidationResult:
    """Checks run in screen order; only the first failure is reported."""
    email = (email or "").strip()
    password = (password or "").strip()
    return _first_failure(validate_email(email), validate_password(password))


def validate_signup_form(
    username: str,
    email: str,
    password: str,
    confirm_password: str,
) -> ValidationResult:
    username = (username or "").strip()
    email = (email or "").strip()
    password = (password or "").strip()
    confirm_password = (confirm_password or "").strip()
    return _first_failure(
        validate_username(username),
        validate_email(email),
        validate_password(password),
        validate_confirm_password(password, confirm_password),
    )
