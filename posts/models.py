"""
posts/models.py -- Domain dataclass for posts.

Pure data container with zero logic. All persistence lives in posts/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    """A post written by an account.

    user_id is the owning account's id. title is unique across all posts.
    id is None before the record is written to the database.
    """

    title: str
    content: str
    category: str
    user_id: str
    image: str = "default.jpeg"
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
