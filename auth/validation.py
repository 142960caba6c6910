"""
auth/validation.py -- Explicit input validation for account flows.

Each validate_* function takes the raw input mapping and returns a list of
FieldError. An empty list means the input is acceptable. Validators never
raise; route handlers turn a non-empty result into ValidationFailedError.

Rules:
  sign-up  name required; email syntactically valid; password 8-32 chars
           and at most 72 UTF-8 bytes; password_confirm equal to password.
  login    email syntactically valid; password within the same bounds. Login
           failures all share the generic credentials message so validation
           cannot reveal which half of the pair was wrong.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from auth.errors import FieldError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 32
# bcrypt refuses input longer than this many bytes.
PASSWORD_MAX_BYTES = 72

_LOGIN_MESSAGE = "Invalid email or password"


def normalize_email(email: str) -> str:
    """Lower-case and strip an email address. Used for storage and lookup."""
    return email.strip().lower()


def _is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def _password_length_error(value: Any) -> str | None:
    if not isinstance(value, str) or len(value) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if len(value) > PASSWORD_MAX_LENGTH:
        return f"Password must be at most {PASSWORD_MAX_LENGTH} characters long"
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return f"Password must be at most {PASSWORD_MAX_BYTES} bytes long"
    return None


def validate_sign_up(data: Mapping[str, Any]) -> list[FieldError]:
    errors: list[FieldError] = []

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(FieldError("name", "Name is required"))

    if not _is_email(data.get("email")):
        errors.append(FieldError("email", "Invalid email address"))

    password = data.get("password")
    length_error = _password_length_error(password)
    if length_error:
        errors.append(FieldError("password", length_error))

    if data.get("password_confirm") != password:
        errors.append(FieldError("password_confirm", "Passwords do not match"))

    return errors


def validate_login(data: Mapping[str, Any]) -> list[FieldError]:
    errors: list[FieldError] = []
    if not _is_email(data.get("email")):
        errors.append(FieldError("email", _LOGIN_MESSAGE))
    if _password_length_error(data.get("password")):
        errors.append(FieldError("password", _LOGIN_MESSAGE))
    return errors
