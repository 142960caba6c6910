"""Unit tests for auth/gate.py -- the authentication gate.

Each failure mode is checked in the order the gate evaluates them:
NoToken -> InvalidToken / TokenExpired -> SessionExpired -> AccountInvalid.
The gate is driven with plain header/cookie dicts; no HTTP involved.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auth.errors import (
    AccountInvalidError,
    InvalidTokenError,
    NoTokenError,
    SessionExpiredError,
    TokenExpiredError,
)
from auth.gate import authenticate, extract_token
from auth.models import KeyRole
from auth.sessions import SessionStore, serialize_session
from auth.tokens import sign_token

TTL = 3600


def _bearer(token: str) -> dict:
    return {"authorization": f"Bearer {token}"}


class TestExtractToken:
    def test_bearer_header(self) -> None:
        assert extract_token({"authorization": "Bearer abc"}, {}) == "abc"

    def test_scheme_is_case_insensitive(self) -> None:
        assert extract_token({"authorization": "bearer abc"}, {}) == "abc"

    def test_header_preferred_over_cookie(self) -> None:
        assert extract_token({"authorization": "Bearer header"}, {"access_token": "cookie"}) == "header"

    def test_cookie_fallback(self) -> None:
        assert extract_token({}, {"access_token": "cookie"}) == "cookie"

    def test_non_bearer_scheme_ignored(self) -> None:
        assert extract_token({"authorization": "Basic Zm9vOmJhcg=="}, {}) is None

    def test_nothing(self) -> None:
        assert extract_token({}, {}) is None


class TestAuthenticate:
    def test_success_returns_live_account(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            return await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)

        resolved = with_sessions(body)
        assert resolved.id == account.id
        assert resolved.password_hash is None, "gate must never hand out the password hash"

    def test_cookie_token_accepted(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            cookies = {"access_token": sign_token(account.id, KeyRole.ACCESS)}
            return await authenticate({}, cookies, sessions, accounts)

        assert with_sessions(body).id == account.id

    def test_no_token(self, accounts, with_sessions) -> None:
        async def body(sessions: SessionStore):
            await authenticate({}, {}, sessions, accounts)

        with pytest.raises(NoTokenError):
            with_sessions(body)

    def test_garbage_token(self, accounts, with_sessions) -> None:
        async def body(sessions: SessionStore):
            await authenticate(_bearer("garbage"), {}, sessions, accounts)

        with pytest.raises(InvalidTokenError):
            with_sessions(body)

    def test_refresh_token_is_not_an_access_token(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            await authenticate(_bearer(sign_token(account.id, KeyRole.REFRESH)), {}, sessions, accounts)

        with pytest.raises(InvalidTokenError):
            with_sessions(body)

    def test_expired_token(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            token = sign_token(account.id, KeyRole.ACCESS, ttl=timedelta(seconds=-1))
            await authenticate(_bearer(token), {}, sessions, accounts)

        with pytest.raises(TokenExpiredError):
            with_sessions(body)

    def test_no_session(self, accounts, make_account, with_sessions) -> None:
        """A valid signature is not enough without a live session."""
        account = make_account()

        async def body(sessions: SessionStore):
            await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)

        with pytest.raises(SessionExpiredError):
            with_sessions(body)

    def test_deleted_session_revokes_token(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            token = sign_token(account.id, KeyRole.ACCESS)
            await sessions.set(account.id, serialize_session(account), TTL)
            await authenticate(_bearer(token), {}, sessions, accounts)
            await sessions.delete(account.id)
            await authenticate(_bearer(token), {}, sessions, accounts)

        with pytest.raises(SessionExpiredError):
            with_sessions(body)

    def test_unparsable_snapshot(self, accounts, make_account, with_sessions) -> None:
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, "not json", TTL)
            await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)

        with pytest.raises(SessionExpiredError):
            with_sessions(body)

    def test_unverified_account(self, accounts, make_account, with_sessions) -> None:
        account = make_account(verified=False)

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)

        with pytest.raises(AccountInvalidError):
            with_sessions(body)

    def test_account_deverified_after_login(self, accounts, make_account, with_sessions) -> None:
        """The account is re-read on every request; the session snapshot is not trusted."""
        account = make_account()

        async def body(sessions: SessionStore):
            await sessions.set(account.id, serialize_session(account), TTL)
            accounts.update(account.id, verified=False)
            await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)

        with pytest.raises(AccountInvalidError):
            with_sessions(body)

    def test_snapshot_for_missing_account(self, accounts, with_sessions) -> None:
        async def body(sessions: SessionStore):
            await sessions.set("ghost", '{"id": "ghost"}', TTL)
            await authenticate(_bearer(sign_token("ghost", KeyRole.ACCESS)), {}, sessions, accounts)

        with pytest.raises(AccountInvalidError):
            with_sessions(body)

    def test_gate_does_not_touch_session(self, accounts, make_account, with_sessions) -> None:
        account = make_account()
        snapshot = serialize_session(account)

        async def body(sessions: SessionStore):
            await sessions.set(account.id, snapshot, TTL)
            await authenticate(_bearer(sign_token(account.id, KeyRole.ACCESS)), {}, sessions, accounts)
            return await sessions.get(account.id)

        assert with_sessions(body) == snapshot
