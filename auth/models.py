"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores and
routes do the work.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields


@dataclass
class User:
    """A registered account.

    id is a random UUID4 assigned at sign-up and never changes.
    password_hash is an argon2 PHC string produced by auth.passwords only;
    it is never serialised to clients (see to_public()).
    """

    email: str
    password_hash: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: str | None = None

    def to_public(self) -> dict:
        """Client-facing view -- excludes password_hash."""
        return {
            "id": str(self.id),
            "email": self.email,
            "created_at": self.created_at,
        }


@dataclass
class SessionData:
    """Server-side session payload.

    A fixed schema instead of a free-form dict: get()/set() accept only the
    declared field names and raise KeyError for anything else. Values are
    stored as JSON-friendly strings; the identity resolver parses user_id back
    into a UUID and treats anything unparseable as absent.

    Never holds a password or password hash.
    """

    user_id: str | None = None

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    def get(self, name: str):
        if name not in self.field_names():
            raise KeyError(name)
        return getattr(self, name)

    def set(self, name: str, value) -> None:
        if name not in self.field_names():
            raise KeyError(name)
        setattr(self, name, value)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SessionData:
        # Unknown keys (e.g. written by a newer release) are dropped.
        known = cls.field_names()
        return cls(**{k: v for k, v in data.items() if k in known})
