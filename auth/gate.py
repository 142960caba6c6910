"""
auth/gate.py -- The single chokepoint every protected operation passes through.

authenticate() resolves "who is making this request, and are they still
allowed" in a fixed order, stopping at the first failure:

  1. Token      Authorization: Bearer <token>, else the access_token cookie.
                Neither                          -> NoTokenError
  2. Signature  decode_token(token, ACCESS).
                exp passed                       -> TokenExpiredError
                anything else                    -> InvalidTokenError
  3. Session    sessions.get(claims.subject).
                absent, expired or unparsable    -> SessionExpiredError
  4. Account    re-read from the account store by the snapshot's id, with the
                hidden verified flag. The snapshot is never trusted on its own.
                missing or unverified            -> AccountInvalidError
  5. Success    the live Account.

The gate reads and never writes: no store mutation, no cookie changes.
The account lookup is synchronous SQLAlchemy and runs in the threadpool.
It works on plain header/cookie mappings so it can be exercised without an
HTTP request; auth/dependencies.py adapts it to FastAPI.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from starlette.concurrency import run_in_threadpool

from auth.cookies import ACCESS_COOKIE
from auth.errors import AccountInvalidError, AuthError, NoTokenError, SessionExpiredError
from auth.models import Account, KeyRole
from auth.sessions import SessionStore, session_account_id
from auth.store import AccountStore
from auth.tokens import decode_token

logger = logging.getLogger("postgate.auth")


def extract_token(headers: Mapping[str, str], cookies: Mapping[str, str]) -> Optional[str]:
    """Return the bearer token from the Authorization header, else the access_token cookie."""
    auth_header = headers.get("authorization") or headers.get("Authorization") or ""
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return cookies.get(ACCESS_COOKIE) or None


async def load_session_account(account_id: str, sessions: SessionStore, accounts: AccountStore) -> Account:
    """Steps 3-4 of the gate: require a live session and a live, verified account.

    Shared with the refresh flow, which layers its own messages on top.
    """
    snapshot = await sessions.get(account_id)
    snapshot_id = session_account_id(snapshot) if snapshot else None
    if snapshot_id is None:
        raise SessionExpiredError()

    account = await run_in_threadpool(accounts.find_by_id, snapshot_id, include_hidden=["verified"])
    if account is None or not account.verified:
        raise AccountInvalidError()
    return account


async def authenticate(
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    sessions: SessionStore,
    accounts: AccountStore,
) -> Account:
    """Resolve the caller's Account or raise the AuthError describing why not."""
    token = extract_token(headers, cookies)
    if not token:
        raise NoTokenError()

    try:
        claims = decode_token(token, KeyRole.ACCESS)
        return await load_session_account(claims.subject, sessions, accounts)
    except AuthError as exc:
        logger.info("Authentication failed: %s", exc.kind.value)
        raise
