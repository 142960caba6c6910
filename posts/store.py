"""
posts/store.py -- SQLAlchemy-backed persistence layer for posts.

Uses SQLAlchemy Core (not ORM) so the dataclass in posts/models.py remains
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. PostStore is the repository; _row_to_post
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = PostStore("sqlite:///postgate.db")
    post = store.create_post(Post(title=..., content=..., category=..., user_id=account.id))
    page = store.list_posts_for_user(account.id, page=1, limit=10)
    store.update_post(post.id, title="A better title")
    store.delete_post(post.id)
    store.close()
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from posts.models import Post

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_posts = Table(
    "posts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(255), nullable=False, unique=True),
    Column("content", Text, nullable=False),
    Column("category", String(100), nullable=False),
    Column("image", String(255), nullable=False, server_default="default.jpeg"),
    Column("user_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_UPDATABLE_FIELDS: frozenset[str] = frozenset({"title", "content", "category", "image"})

MAX_PAGE_SIZE = 100


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PostStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_post(self, post: Post) -> Post:
        """Insert a new post and return it with id and timestamps set.

        Raises sqlalchemy.exc.IntegrityError if the title is already taken.
        Callers turn that into a 409.
        """
        now = _now_iso()
        post_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _posts.insert().values(
                    id=post_id,
                    title=post.title,
                    content=post.content,
                    category=post.category,
                    image=post.image or "default.jpeg",
                    user_id=post.user_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return self.get_post(post_id)

    def get_post(self, post_id: str) -> Optional[Post]:
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts_for_user(self, user_id: str, page: int = 1, limit: int = 10) -> list[Post]:
        """Return one page of a user's posts, newest first.

        page is 1-based. limit is clamped to 1..MAX_PAGE_SIZE.
        """
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        with self.engine.connect() as conn:
            rows = conn.execute(
                _posts.select()
                .where(_posts.c.user_id == user_id)
                .order_by(_posts.c.created_at.desc(), _posts.c.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).fetchall()
        return [_row_to_post(r) for r in rows]

    def update_post(self, post_id: str, **fields) -> bool:
        """Update title, content, category and/or image.

        Returns True if a row was updated, False if post_id was not found.
        Raises sqlalchemy.exc.IntegrityError on a duplicate title.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown post fields: {sorted(unknown)!r}")
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_posts.update().where(_posts.c.id == post_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_post(self, post_id: str) -> bool:
        """Permanently delete a post. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        category=row.category,
        image=row.image,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
