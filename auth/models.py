"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in posts/models.py -- dataclasses own domain shape; stores, the gate and the
session issuer do the work.

Layer rule: no imports from api/, core/, or posts/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum

# Fields that repository reads leave as None unless explicitly requested.
HIDDEN_FIELDS: frozenset[str] = frozenset({"password_hash", "verified"})


@dataclass
class Account:
    """An identity that can sign in and own posts.

    id is an opaque stable string (uuid4 hex) assigned by the store on insert.
    email is stored lower-cased; it is the login identifier and is unique.

    password_hash and verified are hidden fields: AccountStore returns them as
    None unless the caller names them in include_hidden. password_hash never
    leaves auth/ -- to_public() drops it.
    """

    name: str
    email: str
    role: str = "user"
    photo: str = "default.jpeg"
    id: str | None = None
    password_hash: str | None = None
    verified: bool | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_public(self) -> dict:
        """Return the fields safe to expose to clients and to snapshot into a session."""
        data = asdict(self)
        for name in HIDDEN_FIELDS:
            data.pop(name, None)
        return data


class KeyRole(str, Enum):
    """Which key pair signs and verifies a token."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified payload of a signed token.

    subject is the account id (JWT "sub"); token_id ("jti") is random per
    issue so two tokens minted in the same second still differ.
    """

    subject: str
    issued_at: datetime
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login or refresh, as returned to the client."""

    access_token: str
    status: str = "success"
