"""
auth/errors.py -- Failure taxonomy for the authentication core.

Every expected failure of the gate and of the session flows is an AuthError
subclass. Each carries:
  kind         -- AuthFailureKind, the machine-readable category
  code         -- snake_case error code placed in the JSON error envelope
  message      -- short human-readable text, safe to show to the client
  status_code  -- HTTP status the API layer responds with

api/main.py registers one exception handler for AuthError that renders the
same {"error": {...}} envelope used for HTTPException, so route code simply
raises and never builds error responses itself.

Messages must never distinguish "no such email" from "wrong password", and
must never echo tokens, hashes, or stack traces.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AuthFailureKind(str, Enum):
    NO_TOKEN = "NoToken"
    INVALID_TOKEN = "InvalidToken"
    TOKEN_EXPIRED = "TokenExpired"
    SESSION_EXPIRED = "SessionExpired"
    ACCOUNT_INVALID = "AccountInvalid"
    FORBIDDEN = "Forbidden"
    INVALID_CREDENTIALS = "InvalidCredentials"
    DUPLICATE_EMAIL = "DuplicateEmail"
    NOT_FOUND = "NotFound"
    VALIDATION_FAILED = "ValidationFailed"


@dataclass(frozen=True)
class FieldError:
    """One failed validation rule."""

    field: str
    message: str


class AuthError(Exception):
    kind: AuthFailureKind = AuthFailureKind.FORBIDDEN
    code: str = "forbidden"
    status_code: int = 403
    default_message: str = "Forbidden."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        """Return the error payload for the JSON envelope."""
        return {"code": self.code, "message": self.message}


class NoTokenError(AuthError):
    kind = AuthFailureKind.NO_TOKEN
    code = "no_token"
    status_code = 401
    default_message = "No access token found"


class InvalidTokenError(AuthError):
    kind = AuthFailureKind.INVALID_TOKEN
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid access token"


class TokenExpiredError(AuthError):
    kind = AuthFailureKind.TOKEN_EXPIRED
    code = "token_expired"
    status_code = 401
    default_message = "Access token has expired"


class SessionExpiredError(AuthError):
    kind = AuthFailureKind.SESSION_EXPIRED
    code = "session_expired"
    status_code = 403
    default_message = "Session has expired"


class AccountInvalidError(AuthError):
    kind = AuthFailureKind.ACCOUNT_INVALID
    code = "account_invalid"
    status_code = 403
    default_message = "The user belonging to this token no longer exists"


class ForbiddenError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    kind = AuthFailureKind.INVALID_CREDENTIALS
    code = "bad_credentials"
    status_code = 401
    default_message = "Invalid email or password"


class DuplicateEmailError(AuthError):
    kind = AuthFailureKind.DUPLICATE_EMAIL
    code = "duplicate_email"
    status_code = 409
    default_message = "Email already exists"


class NotFoundError(AuthError):
    kind = AuthFailureKind.NOT_FOUND
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class ValidationFailedError(AuthError):
    """Input failed one or more validation rules. errors lists every failure."""

    kind = AuthFailureKind.VALIDATION_FAILED
    code = "validation_error"
    status_code = 422
    default_message = "Request validation failed."

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["fields"] = [{"field": e.field, "message": e.message} for e in self.errors]
        return detail
