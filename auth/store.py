"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Emails are normalised (strip + lower) before every write and lookup so the
  UNIQUE constraint cannot be sidestepped by letter case.

DB URL: DATABASE_URL (shared with posts/store.py).

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4, canonical string form
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # argon2 PHC string
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and "mode=memory" not in db_url and ":memory:" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///postgate.db")
        store.create_user(User(email="a@x.com", password_hash=hash_password("pw")))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with created_at filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        auth.service turns that into ConflictError; a concurrent sign-up with
        the same email lands here even when the pre-check passed.
        """
        user.email = normalize_email(user.email)
        user.created_at = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=str(user.id),
                    email=user.email,
                    password_hash=user.password_hash,
                    created_at=user.created_at,
                )
            )
        return user

    def get_by_id(self, user_id: uuid.UUID) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == str(user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: uuid.UUID, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, password_hash. password_hash must come from
        auth.passwords.hash_password -- never a plaintext value.

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError if the new email belongs to another user.
        """
        unknown = set(fields) - {"email", "password_hash"}
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == str(user_id)).values(**fields))
        return result.rowcount > 0

    def delete_user(self, user_id: uuid.UUID) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Posts owned by the user are removed by the caller (PostStore.delete_by_owner).
        """
        with self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == str(user_id)))
        return result.rowcount > 0

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(_users.c.id).limit(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=uuid.UUID(row.id),
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
