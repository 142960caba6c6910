"""
auth/sessions.py -- Redis-backed server-side session store.

A session is one Redis string per account:

    key   = "<prefix><account id>"          e.g. "session:3f2a..."
    value = JSON snapshot of Account.to_public() at issuance time
    TTL   = refresh token lifetime in seconds

A live key is the sole authority that an account's tokens are still honoured.
Token signatures alone are necessary but not sufficient -- deleting the key
revokes every outstanding access and refresh token for the account.

Semantics:
  set()    always overwrites (SET ... EX). Concurrent logins for the same
           account race to last-writer-wins; there is no session versioning.
  get()    returns None for both expired and never-set keys -- Redis makes
           the two indistinguishable, and callers must not care.
  delete() is idempotent.

Atomicity is per key, provided by Redis. No in-process locking.

The client is a redis.asyncio.Redis created once in the API lifespan and
passed in; this module never opens connections on import.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from auth.models import Account

logger = logging.getLogger("postgate.auth")


def create_redis_client(redis_url: str, *, socket_timeout: float = 5.0) -> aioredis.Redis:
    """Build the process-scoped async Redis client with explicit timeouts."""
    return aioredis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


def serialize_session(account: Account) -> str:
    """Return the JSON session snapshot for account. Hidden fields are never included."""
    return json.dumps(account.to_public())


def session_account_id(snapshot: str) -> Optional[str]:
    """Extract the account id from a session snapshot. None if the snapshot is unusable."""
    try:
        data = json.loads(snapshot)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    account_id = data.get("id")
    return account_id if isinstance(account_id, str) and account_id else None


class SessionStore:
    """Key-value store mapping account id -> session snapshot with TTL.

    Usage:
        sessions = SessionStore(create_redis_client("redis://localhost:6379/0"))
        await sessions.set(account.id, serialize_session(account), 3600)
        snapshot = await sessions.get(account.id)    # str or None
        await sessions.delete(account.id)
        await sessions.close()
    """

    def __init__(self, client: aioredis.Redis, prefix: str = "session:") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, account_id: str) -> str:
        return f"{self.prefix}{account_id}"

    async def set(self, account_id: str, snapshot: str, ttl_seconds: int) -> None:
        """Store snapshot for account_id, replacing any existing session."""
        # Redis rejects EX <= 0.
        await self.client.set(self._key(account_id), snapshot, ex=max(1, int(ttl_seconds)))

    async def get(self, account_id: str) -> Optional[str]:
        """Return the session snapshot, or None if absent or expired."""
        return await self.client.get(self._key(account_id))

    async def delete(self, account_id: str) -> None:
        await self.client.delete(self._key(account_id))

    async def ttl(self, account_id: str) -> Optional[int]:
        """Remaining lifetime in seconds, or None if there is no live session."""
        remaining = await self.client.ttl(self._key(account_id))
        return remaining if remaining is not None and remaining >= 0 else None

    async def ping(self) -> bool:
        """Return True if Redis answers. Used by the health endpoint."""
        try:
            return bool(await self.client.ping())
        except RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self.client.aclose()
