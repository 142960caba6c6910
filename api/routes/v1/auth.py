"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account; 201
  POST /api/v1/auth/login      -- password login; sets access/refresh/logged_in cookies
  GET  /api/v1/auth/refresh    -- new access token from the refresh_token cookie
  POST /api/v1/auth/logout     -- ends the session and clears cookies; always 200
  GET  /api/v1/auth/me         -- current account (requires auth)

Route handlers are thin: they hand the request's headers/cookies and the
response to SessionIssuer and map the result into a response model. Every
failure is an AuthError raised by the issuer or gate; api/main.py renders it.

Security:
  Login returns the same error for unknown email, wrong password and
  unverified account ("bad_credentials").
  Cache-Control: no-store on login and refresh responses -- they carry tokens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import AccountData, LoginRequest, LoginResponse, SignUpRequest, StatusResponse, UserResponse
from auth.dependencies import get_issuer
from auth.service import SessionIssuer

# Auth policy:
# - POST /auth/register:  public
# - POST /auth/login:     public
# - GET  /auth/refresh:   public -- authenticated by the refresh_token cookie itself
# - POST /auth/logout:    public -- idempotent, succeeds without a live session
# - GET  /auth/me:        requires auth (gate runs inside SessionIssuer.get_me)
router = APIRouter()


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(body: SignUpRequest, issuer: SessionIssuer = Depends(get_issuer)) -> UserResponse:
    """Create a new account. The password is hashed before it is stored."""
    account = issuer.sign_up(body.model_dump())
    return UserResponse(user=AccountData.from_account(account))


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    issuer: SessionIssuer = Depends(get_issuer),
) -> LoginResponse:
    """Authenticate with email and password; open a session and set cookies."""
    result = await issuer.login(body.email, body.password, response)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(status=result.status, access_token=result.access_token)


@router.get("/auth/refresh", response_model=LoginResponse)
async def refresh(
    request: Request,
    response: Response,
    issuer: SessionIssuer = Depends(get_issuer),
) -> LoginResponse:
    """Issue a new access token. The refresh token and session are left as they are."""
    result = await issuer.refresh(request.cookies, response)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(status=result.status, access_token=result.access_token)


@router.post("/auth/logout", response_model=StatusResponse)
async def logout(
    request: Request,
    response: Response,
    issuer: SessionIssuer = Depends(get_issuer),
) -> StatusResponse:
    """Delete the caller's session and clear the auth cookies."""
    await issuer.logout(request.headers, request.cookies, response)
    return StatusResponse()


@router.get("/auth/me", response_model=UserResponse)
async def me(request: Request, issuer: SessionIssuer = Depends(get_issuer)) -> UserResponse:
    """Return the currently authenticated account."""
    account = await issuer.get_me(request.headers, request.cookies)
    return UserResponse(user=AccountData.from_account(account))
