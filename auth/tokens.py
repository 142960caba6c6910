"""
auth/tokens.py -- JWT signing and verification per key role.

Security design decisions:
  JWT: python-jose with RS256. Each token class (access, refresh) has its own
       RSA key pair: the private key signs, the public key verifies. A refresh
       token therefore never verifies as an access token and vice versa.

  Algorithm pinning: decode_token() passes algorithms=["RS256"] only. A token
       whose header names HS256, "none", or anything else is rejected before
       any signature check -- this blocks the classic confusion attack where
       the public key is used as an HMAC secret.

  Claims: {sub, iat, exp, jti}. sub is the account id; jti is random so every
       issued token is distinct even when two are minted in the same second.

  Two verification entry points:
       decode_token() raises TokenExpiredError / InvalidTokenError so the
       gate can tell an expired token from a forged one.
       verify_token() is the non-raising boundary: any failure returns None
       and the caller treats every invalid token the same way.

  Keys: four base64-encoded PEM settings, decoded once per process into a
       KeyRing by get_keyring().

Layer rule: no imports from api/ or posts/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidTokenError, TokenExpiredError
from auth.models import KeyRole, TokenClaims, TokenPair
from core.config import get_settings

logger = logging.getLogger("postgate.auth")

_ALGORITHM = "RS256"
_REQUIRED_CLAIMS = ("sub", "iat", "exp", "jti")


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyPair:
    private_pem: str
    public_pem: str


@dataclass(frozen=True)
class KeyRing:
    access: KeyPair
    refresh: KeyPair

    def for_role(self, role: KeyRole) -> KeyPair:
        return self.access if role is KeyRole.ACCESS else self.refresh


def _decode_pem(value: str) -> str:
    return base64.b64decode(value).decode("ascii")


@lru_cache
def get_keyring() -> KeyRing:
    """Decode the configured base64 PEM keys once and cache them for the process."""
    settings = get_settings()
    return KeyRing(
        access=KeyPair(
            private_pem=_decode_pem(settings.access_token_private_key),
            public_pem=_decode_pem(settings.access_token_public_key),
        ),
        refresh=KeyPair(
            private_pem=_decode_pem(settings.refresh_token_private_key),
            public_pem=_decode_pem(settings.refresh_token_public_key),
        ),
    )


def default_ttl(role: KeyRole) -> timedelta:
    """Configured lifetime for the given token role."""
    settings = get_settings()
    minutes = settings.access_token_expires_in if role is KeyRole.ACCESS else settings.refresh_token_expires_in
    return timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def sign_token(subject: str, role: KeyRole, ttl: timedelta | None = None) -> str:
    """Sign a JWT for subject with the role's private key.

    Args:
        subject: Account id stored as the "sub" claim.
        role:    KeyRole.ACCESS or KeyRole.REFRESH -- selects the key pair.
        ttl:     Token lifetime. Defaults to the configured lifetime for the
                 role. A negative ttl yields a token that is already expired.
    """
    now = datetime.now(timezone.utc)
    lifetime = ttl if ttl is not None else default_ttl(role)
    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + lifetime,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, get_keyring().for_role(role).private_pem, algorithm=_ALGORITHM)


def sign_token_pair(subject: str) -> TokenPair:
    """Sign a fresh access + refresh token for subject with default lifetimes."""
    return TokenPair(
        access_token=sign_token(subject, KeyRole.ACCESS),
        refresh_token=sign_token(subject, KeyRole.REFRESH),
    )


def decode_token(token: str, role: KeyRole) -> TokenClaims:
    """Verify a JWT against the role's public key and return its claims.

    Raises TokenExpiredError if the signature is valid but exp has passed,
    InvalidTokenError for every other failure (bad signature, wrong key
    role, disallowed algorithm, malformed token, missing claims).
    """
    try:
        payload = jwt.decode(token, get_keyring().for_role(role).public_pem, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except JWTError as exc:
        raise InvalidTokenError() from exc

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise InvalidTokenError()
    try:
        return TokenClaims(
            subject=str(payload["sub"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            token_id=str(payload["jti"]),
        )
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidTokenError() from exc


def verify_token(token: str, role: KeyRole) -> TokenClaims | None:
    """Verify a JWT. Returns the claims or None on any failure.

    Returning None (rather than raising) keeps callers simple: any invalid
    or expired token is treated uniformly.
    """
    try:
        return decode_token(token, role)
    except (InvalidTokenError, TokenExpiredError):
        return None
