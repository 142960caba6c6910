"""
auth/cookies.py -- Writing and clearing the auth cookie set.

Three cookies travel with a signed-in browser:

  access_token   httpOnly  -- short-lived JWT, read by the gate
  refresh_token  httpOnly  -- long-lived JWT, read only by the refresh flow
  logged_in      readable  -- "true"; lets client-side code know a session exists

Each cookie's max_age and expires mirror the lifetime of the token it sits
next to, so cookie and token expire together. secure follows
Settings.cookie_secure (forced on in production); samesite and domain come
from settings.

Clearing uses max_age=-1 with the same path/domain the cookies were written
with -- a clear with a different domain would leave the original in place.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from starlette.responses import Response

from core.config import get_settings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"
LOGGED_IN_COOKIE = "logged_in"

AUTH_COOKIES = (ACCESS_COOKIE, REFRESH_COOKIE, LOGGED_IN_COOKIE)


def _set(response: Response, name: str, value: str, *, max_age: int, httponly: bool = True) -> None:
    settings = get_settings()
    response.set_cookie(
        name,
        value=value,
        max_age=max_age,
        expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
        path="/",
        domain=settings.cookie_domain,
        secure=settings.cookie_secure,
        httponly=httponly,
        samesite=settings.cookie_samesite,
    )


def set_access_cookies(response: Response, access_token: str) -> None:
    """Write access_token and the client-readable logged_in marker."""
    ttl = get_settings().access_token_ttl_seconds
    _set(response, ACCESS_COOKIE, access_token, max_age=ttl)
    _set(response, LOGGED_IN_COOKIE, "true", max_age=ttl, httponly=False)


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Write the full cookie set after a successful login."""
    set_access_cookies(response, access_token)
    _set(response, REFRESH_COOKIE, refresh_token, max_age=get_settings().refresh_token_ttl_seconds)


def clear_auth_cookies(response: Response) -> None:
    """Expire all three auth cookies on the client."""
    settings = get_settings()
    for name in AUTH_COOKIES:
        response.set_cookie(
            name,
            value="",
            max_age=-1,
            expires=0,
            path="/",
            domain=settings.cookie_domain,
            secure=settings.cookie_secure,
            httponly=name != LOGGED_IN_COOKIE,
            samesite=settings.cookie_samesite,
        )
