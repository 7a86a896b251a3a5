"""
posts/models.py -- Domain dataclass for posts.

A pure data container. Ownership checks live in auth/ownership.py and
persistence in posts/store.py.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass
class Post:
    """A titled text owned by the user who created it.

    user_id is set at creation and never changes; it is what the ownership
    gate compares against the caller's identity.

    id is None before the record is written to the database.
    """

    title: str
    text: str
    user_id: uuid.UUID
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "text": self.text,
            "user_id": str(self.user_id),
            "created_at": self.created_at,
        }
