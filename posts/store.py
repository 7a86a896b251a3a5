"""
posts/store.py -- SQLAlchemy-backed persistence layer for posts.

Uses SQLAlchemy Core (not ORM) so the dataclass in posts/models.py remains the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. PostStore is the repository, _row_to_post
is the mapper. Ownership is NOT checked here -- routes run every mutation
through auth.ownership.authorize_mutation first.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = PostStore("sqlite:///postgate.db")
    post = store.create_post(Post(title="Hi", text="...", user_id=user.id))
    store.update_post(post.id, title="Hello")
    store.delete_post(post.id)
    store.close()
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.store import make_engine
from posts.models import Post

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_posts = Table(
    "posts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("text", Text, nullable=False),
    Column("user_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PostStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_post(self, post: Post) -> Post:
        """Insert a post and return it with id and created_at assigned."""
        post.created_at = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _posts.insert().values(
                    title=post.title,
                    text=post.text,
                    user_id=str(post.user_id),
                    created_at=post.created_at,
                )
            )
            post.id = result.inserted_primary_key[0]
        return post

    def get_by_id(self, post_id: int) -> Post | None:
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self) -> list[Post]:
        """Return all posts, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_posts.select().order_by(_posts.c.id)).fetchall()
        return [_row_to_post(r) for r in rows]

    def update_post(self, post_id: int, **fields) -> bool:
        """Update title and/or text. Returns True if a row was updated.

        user_id is deliberately not accepted: ownership is fixed at creation.
        """
        unknown = set(fields) - {"title", "text"}
        if unknown:
            raise ValueError(f"Unknown post fields: {unknown!r}")
        if not fields:
            return self.get_by_id(post_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_posts.update().where(_posts.c.id == post_id).values(**fields))
        return result.rowcount > 0

    def delete_post(self, post_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
        return result.rowcount > 0

    def delete_by_owner(self, user_id: uuid.UUID) -> int:
        """Delete every post owned by user_id. Returns the number removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_posts.delete().where(_posts.c.user_id == str(user_id)))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        text=row.text,
        user_id=uuid.UUID(row.user_id),
        created_at=row.created_at,
    )
