"""
api/routes/v1/posts.py -- Post CRUD routes for the PostGate REST API.

Routes:
  POST   /posts             -- create a post owned by the caller; 201
  GET    /posts             -- list the caller's posts, newest first (?page=&limit=)
  GET    /posts/{post_id}   -- one post with its author
  PATCH  /posts/{post_id}   -- update the caller's own post
  DELETE /posts/{post_id}   -- delete the caller's own post; 204

Every route runs the auth gate first (router-level dependency) and then
receives the resolved Account through Depends(get_current_account), an alias
of deserialize_user; FastAPI caches the dependency per request so the gate
runs once.

Ownership: update and delete answer 404 for posts owned by someone else, the
same response as for a post that does not exist.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import PostCreate, PostData, PostListResponse, PostResponse, PostUpdate
from auth.dependencies import deserialize_user, get_current_account
from auth.errors import ValidationFailedError
from auth.models import Account
from auth.store import AccountStore
from posts.models import Post
from posts.store import MAX_PAGE_SIZE, PostStore
from posts.validation import validate_post_create, validate_post_update

logger = logging.getLogger("postgate.posts")

router = APIRouter(dependencies=[Depends(deserialize_user)])

_NOT_FOUND = {"code": "not_found", "message": "No post with that id exists"}
_DUPLICATE_TITLE = {"code": "duplicate_title", "message": "Post with that title already exist"}


def _author(request: Request, post: Post) -> Account | None:
    accounts: AccountStore = request.app.state.accounts
    return accounts.find_by_id(post.user_id)


def _owned_post(request: Request, post_id: str, account: Account) -> Post:
    posts: PostStore = request.app.state.posts
    post = posts.get_post(post_id)
    if post is None or post.user_id != account.id:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return post


# ---------------------------------------------------------------------------
# POST /posts
# ---------------------------------------------------------------------------


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostCreate,
    account: Account = Depends(get_current_account),
) -> PostResponse:
    """Create a post. The caller becomes its owner."""
    errors = validate_post_create(body.model_dump())
    if errors:
        raise ValidationFailedError(errors)

    posts: PostStore = request.app.state.posts
    try:
        post = posts.create_post(
            Post(
                title=body.title,
                content=body.content,
                category=body.category,
                image=body.image or "default.jpeg",
                user_id=account.id,
            )
        )
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE_TITLE) from exc
    logger.info("Post created: %s by %s", post.id, account.id)
    return PostResponse(post=PostData.from_post(post, account))


# ---------------------------------------------------------------------------
# GET /posts
# ---------------------------------------------------------------------------


@router.get("/posts", response_model=PostListResponse)
def list_posts(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    account: Account = Depends(get_current_account),
) -> PostListResponse:
    """Return one page of the caller's posts, newest first."""
    posts: PostStore = request.app.state.posts
    page_posts = posts.list_posts_for_user(account.id, page=page, limit=limit)
    return PostListResponse(
        results=len(page_posts),
        posts=[PostData.from_post(p, account) for p in page_posts],
    )


# ---------------------------------------------------------------------------
# GET /posts/{post_id}
# ---------------------------------------------------------------------------


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(request: Request, post_id: str) -> PostResponse:
    """Return a single post with its author populated."""
    posts: PostStore = request.app.state.posts
    post = posts.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return PostResponse(post=PostData.from_post(post, _author(request, post)))


# ---------------------------------------------------------------------------
# PATCH /posts/{post_id}
# ---------------------------------------------------------------------------


@router.patch("/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: str,
    body: PostUpdate,
    account: Account = Depends(get_current_account),
) -> PostResponse:
    """Update the caller's own post. Omitted fields are left unchanged."""
    updates = body.model_dump(exclude_none=True)
    errors = validate_post_update(updates)
    if errors:
        raise ValidationFailedError(errors)
    if not updates:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})

    _owned_post(request, post_id, account)
    posts: PostStore = request.app.state.posts
    try:
        posts.update_post(post_id, **updates)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE_TITLE) from exc
    updated = posts.get_post(post_id)
    if updated is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return PostResponse(post=PostData.from_post(updated, account))


# ---------------------------------------------------------------------------
# DELETE /posts/{post_id}
# ---------------------------------------------------------------------------


@router.delete("/posts/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: str,
    account: Account = Depends(get_current_account),
) -> Response:
    """Delete the caller's own post."""
    _owned_post(request, post_id, account)
    posts: PostStore = request.app.state.posts
    if not posts.delete_post(post_id):
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    logger.info("Post deleted: %s by %s", post_id, account.id)
    return Response(status_code=204)
