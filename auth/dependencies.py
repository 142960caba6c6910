"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

deserialize_user() adapts auth.gate.authenticate() to a Starlette Request.
The process-scoped stores it needs are read from app.state, where the API
lifespan put them at startup:

  app.state.sessions  -- auth.sessions.SessionStore
  app.state.accounts  -- auth.store.AccountStore
  app.state.issuer    -- auth.service.SessionIssuer

Route signatures use it through the get_current_account alias. It raises
the gate's AuthError, which api/main.py renders as a 401/403 error
envelope:

    @router.get("/protected")
    async def route(account: Account = Depends(get_current_account)): ...

Layer rule: no imports from posts/. auth/dependencies.py may import from
fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.gate import authenticate
from auth.models import Account
from auth.service import SessionIssuer


async def deserialize_user(request: Request) -> Account:
    """Require authentication. Runs the auth gate against the request's headers and cookies."""
    return await authenticate(
        request.headers,
        request.cookies,
        request.app.state.sessions,
        request.app.state.accounts,
    )


def get_issuer(request: Request) -> SessionIssuer:
    """Return the process-scoped SessionIssuer created in the API lifespan."""
    return request.app.state.issuer


# Name used by route signatures. Same callable, so FastAPI's per-request
# dependency cache runs the gate once even when a router also lists
# deserialize_user as a router-level dependency.
get_current_account = deserialize_user
