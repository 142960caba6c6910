"""Unit tests for auth/tokens.py -- RS256 signing and verification.

Covers:
- sign/verify round trip returns the subject with exp after iat
- expired tokens: decode_token raises TokenExpiredError, verify_token returns None
- key role isolation: access and refresh tokens never verify under the other role
- algorithm pinning: HS256 and "none" tokens are rejected
- foreign keys, garbage input and missing claims are rejected
- jti makes tokens minted back to back distinct
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import InvalidTokenError, TokenExpiredError
from auth.models import KeyRole
from auth.tokens import decode_token, get_keyring, sign_token, sign_token_pair, verify_token
from core.config import generate_key_pair


def _b64url(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def _claims(subject: str = "acct-1") -> dict:
    now = datetime.now(timezone.utc)
    return {"sub": subject, "iat": now, "exp": now + timedelta(minutes=5), "jti": "abc"}


class TestRoundTrip:
    def test_access_token_round_trip(self) -> None:
        """A freshly signed access token verifies with its subject."""
        token = sign_token("acct-1", KeyRole.ACCESS)
        claims = verify_token(token, KeyRole.ACCESS)
        assert claims is not None
        assert claims.subject == "acct-1"
        assert claims.expires_at > claims.issued_at

    def test_refresh_token_round_trip(self) -> None:
        token = sign_token("acct-2", KeyRole.REFRESH)
        claims = decode_token(token, KeyRole.REFRESH)
        assert claims.subject == "acct-2"

    def test_explicit_ttl_sets_expiry(self) -> None:
        """exp - iat equals the requested ttl."""
        claims = decode_token(sign_token("acct-1", KeyRole.ACCESS, ttl=timedelta(seconds=90)), KeyRole.ACCESS)
        assert (claims.expires_at - claims.issued_at).total_seconds() == 90

    def test_tokens_minted_together_differ(self) -> None:
        """Two tokens for the same subject in the same second carry different jti values."""
        first = sign_token("acct-1", KeyRole.ACCESS)
        second = sign_token("acct-1", KeyRole.ACCESS)
        assert first != second
        assert decode_token(first, KeyRole.ACCESS).token_id != decode_token(second, KeyRole.ACCESS).token_id

    def test_token_pair_uses_both_roles(self) -> None:
        pair = sign_token_pair("acct-3")
        assert verify_token(pair.access_token, KeyRole.ACCESS).subject == "acct-3"
        assert verify_token(pair.refresh_token, KeyRole.REFRESH).subject == "acct-3"


class TestExpiry:
    def test_expired_token_raises_token_expired(self) -> None:
        token = sign_token("acct-1", KeyRole.ACCESS, ttl=timedelta(seconds=-1))
        with pytest.raises(TokenExpiredError):
            decode_token(token, KeyRole.ACCESS)

    def test_expired_token_verifies_as_none(self) -> None:
        token = sign_token("acct-1", KeyRole.REFRESH, ttl=timedelta(seconds=-1))
        assert verify_token(token, KeyRole.REFRESH) is None


class TestKeyRoleIsolation:
    def test_access_token_rejected_as_refresh(self) -> None:
        token = sign_token("acct-1", KeyRole.ACCESS)
        assert verify_token(token, KeyRole.REFRESH) is None

    def test_refresh_token_rejected_as_access(self) -> None:
        token = sign_token("acct-1", KeyRole.REFRESH)
        with pytest.raises(InvalidTokenError):
            decode_token(token, KeyRole.ACCESS)

    def test_roles_use_different_key_pairs(self) -> None:
        keyring = get_keyring()
        assert keyring.access.private_pem != keyring.refresh.private_pem
        assert keyring.access.public_pem != keyring.refresh.public_pem


class TestRejectedTokens:
    def test_hs256_token_rejected(self) -> None:
        """A token signed with an HMAC secret must never verify, whatever its claims."""
        token = jwt.encode(_claims(), "s" * 32, algorithm="HS256")
        assert verify_token(token, KeyRole.ACCESS) is None

    def test_alg_none_token_rejected(self) -> None:
        token = f"{_b64url({'alg': 'none', 'typ': 'JWT'})}.{_b64url({'sub': 'acct-1', 'exp': 9999999999})}."
        assert verify_token(token, KeyRole.ACCESS) is None

    def test_foreign_rsa_key_rejected(self) -> None:
        """A well-formed RS256 token from a key pair we do not hold is invalid."""
        private_b64, _public_b64 = generate_key_pair()
        foreign_pem = base64.b64decode(private_b64).decode("ascii")
        token = jwt.encode(_claims(), foreign_pem, algorithm="RS256")
        with pytest.raises(InvalidTokenError):
            decode_token(token, KeyRole.ACCESS)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "x" * 500])
    def test_garbage_rejected(self, garbage: str) -> None:
        assert verify_token(garbage, KeyRole.ACCESS) is None

    def test_missing_jti_rejected(self) -> None:
        """Correctly signed but lacking a required claim still counts as invalid."""
        claims = _claims()
        del claims["jti"]
        token = jwt.encode(claims, get_keyring().access.private_pem, algorithm="RS256")
        with pytest.raises(InvalidTokenError):
            decode_token(token, KeyRole.ACCESS)
