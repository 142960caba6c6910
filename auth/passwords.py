"""
auth/passwords.py -- Password hashing and verification.

Passwords: bcrypt used directly (no passlib wrapper). passlib's internal
    wrap-bug detection creates a password longer than 72 bytes, which bcrypt
    4.x rejects with an explicit error. Direct bcrypt usage has no
    compatibility shim and is actively maintained.

Cost factor: read from get_settings() on every hash_password() call rather
    than captured at import, so raising COST_FACTOR applies to the next
    password written without touching call sites.

Timing equalization: _DUMMY_HASH lets the login flow run one bcrypt
    comparison even when the email is unknown, so response time does not
    reveal whether an account exists.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt rejects input longer than 72 bytes with ValueError. Sign-up and
    login validation reject such passwords (PASSWORD_MAX_BYTES) before they
    reach this function; 32 multibyte characters can exceed the limit.
    """
    rounds = get_settings().cost_factor
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty stored hash compares as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("postgate_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded.

    Called on the unknown-email path of login so that path costs the same
    as a wrong-password check.
    """
    verify_password(plain, _DUMMY_HASH)
