"""
API request and response models for PostGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models only fix the JSON shape (field names and types). Content
rules -- lengths, email syntax, password confirmation -- are enforced by the
explicit validators in auth/validation.py and posts/validation.py so the same
rules apply no matter how a flow is invoked. Passwords are passed through
byte for byte; only names and emails are stripped.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Account
from posts.models import Post

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    name: str
    email: str
    password: str
    password_confirm: str
    photo: Optional[str] = None

    @field_validator("name", "email")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip()


class PostCreate(BaseModel):
    """Request body for POST /api/v1/posts."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str
    content: str
    category: str
    image: Optional[str] = None


class PostUpdate(BaseModel):
    """Request body for PATCH /api/v1/posts/{post_id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountData(BaseModel):
    """Public view of an account. Never carries password_hash or verified."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: str
    photo: str
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountData":
        return cls(**account.to_public())


class UserResponse(BaseModel):
    """Response for register and me."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    user: AccountData


class LoginResponse(BaseModel):
    """Response for login and refresh."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    access_token: str


class StatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"


class PostData(BaseModel):
    """A post with its author populated when the author still exists."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    category: str
    image: str
    user_id: str
    user: Optional[AccountData] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_post(cls, post: Post, author: Optional[Account] = None) -> "PostData":
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            category=post.category,
            image=post.image,
            user_id=post.user_id,
            user=AccountData.from_account(author) if author is not None else None,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    post: PostData


class PostListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    results: int
    posts: list[PostData] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
