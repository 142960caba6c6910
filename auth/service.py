"""
auth/service.py -- Session lifecycle flows: sign-up, login, refresh, logout, me.

SessionIssuer orchestrates the token codec, the Redis session store and the
account store. It holds only the process-scoped store handles it was built
with; every call reloads what it needs, so any number of server processes
can share the same stores.

Transitions:
  sign_up  validate -> create account (password hashed in the store) -> Account
  login    account by email (+password_hash, +verified) -> bcrypt compare
           -> sign TokenPair -> sessions.set(id, snapshot, refresh TTL)
           -> write access_token / refresh_token / logged_in cookies
  refresh  verify refresh_token cookie (refresh key) -> live session
           -> live verified account -> sign a new access token only
           -> rewrite access_token / logged_in. Session and refresh token
           are left untouched (no refresh-token rotation).
  logout   identify caller (gate, else refresh cookie) -> sessions.delete
           -> clear all three cookies. Always succeeds; repeating it is a no-op.
  get_me   the gate result, nothing else.

Login never distinguishes "no such email", "wrong password" and "not
verified": all three raise the same InvalidCredentialsError, and the
unknown-email path still pays for one bcrypt comparison.

The async flows await Redis directly. bcrypt and the SQLAlchemy account
store are synchronous, so they run through run_in_threadpool and never
block the event loop.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from auth.cookies import REFRESH_COOKIE, clear_auth_cookies, set_access_cookies, set_auth_cookies
from auth.errors import (
    AccountInvalidError,
    AuthError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    SessionExpiredError,
    ValidationFailedError,
)
from auth.gate import authenticate
from auth.models import Account, KeyRole, LoginResult
from auth.passwords import burn_password_check, verify_password
from auth.sessions import SessionStore, serialize_session, session_account_id
from auth.store import AccountStore
from auth.tokens import sign_token, sign_token_pair, verify_token
from auth.validation import validate_login, validate_sign_up
from core.config import get_settings

logger = logging.getLogger("postgate.auth")

_REFRESH_FAILED = "Could not refresh access token"


class SessionIssuer:
    """Implements the account session flows on top of the two stores."""

    def __init__(self, accounts: AccountStore, sessions: SessionStore) -> None:
        self.accounts = accounts
        self.sessions = sessions

    # ------------------------------------------------------------------
    # Sign-up
    # ------------------------------------------------------------------

    def sign_up(self, data: Mapping[str, Any]) -> Account:
        """Register a new account.

        Raises ValidationFailedError listing every failed rule, or
        DuplicateEmailError if the email is already registered.
        """
        errors = validate_sign_up(data)
        if errors:
            raise ValidationFailedError(errors)

        fields = {
            "name": data["name"],
            "email": data["email"],
            "password": data["password"],
        }
        if data.get("photo"):
            fields["photo"] = data["photo"]
        account = self.accounts.create(fields)
        logger.info("Account registered: %s", account.id)
        return account

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str, response: Response) -> LoginResult:
        """Check credentials, open a session, and set the auth cookies."""
        if validate_login({"email": email, "password": password}):
            raise InvalidCredentialsError()

        account = await run_in_threadpool(
            self.accounts.find_by_email, email, include_hidden=["password_hash", "verified"]
        )
        if account is None or account.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt.
            await run_in_threadpool(burn_password_check, password)
            raise InvalidCredentialsError()
        if not await run_in_threadpool(verify_password, password, account.password_hash):
            raise InvalidCredentialsError()
        if not account.verified:
            raise InvalidCredentialsError()

        pair = sign_token_pair(account.id)
        await self.sessions.set(
            account.id,
            serialize_session(account),
            get_settings().refresh_token_ttl_seconds,
        )
        set_auth_cookies(response, pair.access_token, pair.refresh_token)
        logger.info("Login succeeded: %s", account.id)
        return LoginResult(access_token=pair.access_token)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, cookies: Mapping[str, str], response: Response) -> LoginResult:
        """Issue a new access token from the refresh_token cookie."""
        refresh_token = cookies.get(REFRESH_COOKIE)
        claims = verify_token(refresh_token, KeyRole.REFRESH) if refresh_token else None
        if claims is None:
            raise ForbiddenError(_REFRESH_FAILED)

        snapshot = await self.sessions.get(claims.subject)
        account_id = session_account_id(snapshot) if snapshot else None
        if account_id is None:
            raise SessionExpiredError("User session has expired")

        account = await run_in_threadpool(self.accounts.find_by_id, account_id, include_hidden=["verified"])
        if account is None:
            raise NotFoundError("The user belonging to this token no longer exists")
        if not account.verified:
            raise AccountInvalidError(_REFRESH_FAILED)

        access_token = sign_token(account.id, KeyRole.ACCESS)
        set_access_cookies(response, access_token)
        return LoginResult(access_token=access_token)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    async def logout(self, headers: Mapping[str, str], cookies: Mapping[str, str], response: Response) -> None:
        """End the caller's session and clear the auth cookies.

        The caller is identified by the gate. If the gate fails (expired
        access token, session already gone) the refresh cookie is tried so
        a stale access token cannot leave a live session behind.
        """
        subject: str | None = None
        try:
            account = await authenticate(headers, cookies, self.sessions, self.accounts)
            subject = account.id
        except AuthError as exc:
            refresh_token = cookies.get(REFRESH_COOKIE)
            claims = verify_token(refresh_token, KeyRole.REFRESH) if refresh_token else None
            subject = claims.subject if claims else None
            logger.debug("Logout without live access session (%s)", exc.kind.value)

        if subject is not None:
            await self.sessions.delete(subject)
            logger.info("Logged out: %s", subject)
        clear_auth_cookies(response)

    # ------------------------------------------------------------------
    # Me
    # ------------------------------------------------------------------

    async def get_me(self, headers: Mapping[str, str], cookies: Mapping[str, str]) -> Account:
        """Return the authenticated Account without side effects."""
        return await authenticate(headers, cookies, self.sessions, self.accounts)
