"""
auth/sessions.py -- Session store backends.

Pattern: Strategy. SessionStore is the contract; MemorySessionStore and
SharedSessionStore are interchangeable backends chosen once at startup by
build_session_store(). Call sites only ever see SessionStore.

Contract:
  create()            -> new unguessable token with an empty payload
  load(token)         -> SessionData, or SessionNotFoundError if unknown/expired
  save(token, data)   -> overwrite payload and refresh expiry (upsert)
  destroy(token)      -> remove entry; destroying a missing token is a no-op
  purge_expired()     -> best-effort cleanup, returns rows removed

Concurrency:
  Every operation touches exactly one token and replaces the whole payload,
  so two concurrent saves for the same token leave one writer's payload
  intact (last save wins). That lost update is accepted; nothing here spans
  multiple tokens or needs a cross-request lock.

Backends:
  MemorySessionStore -- dict guarded by a lock. Lives and dies with the
      process; fine for a single instance and for tests.
  SharedSessionStore -- SQLAlchemy Core table, so any process pointing at
      the same database URL sees the same sessions. Every SQLAlchemy failure
      is re-raised as StoreUnavailableError, never swallowed.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import SessionData
from core.errors import StoreUnavailableError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("postgate.sessions")

_DEFAULT_TTL = 60 * 60 * 24  # 24 hours in seconds


class SessionNotFoundError(KeyError):
    """No live session exists for the token (never created, destroyed or expired)."""


def generate_token() -> str:
    """Return a new session token.

    secrets.token_urlsafe(32) gives 256 bits of entropy; the token is the
    only caller-visible handle to session state.
    """
    return secrets.token_urlsafe(32)


class SessionStore(ABC):
    """Abstract key-value session backend keyed by an opaque token."""

    def __init__(self, ttl: int = _DEFAULT_TTL) -> None:
        self.ttl = ttl

    @abstractmethod
    def create(self) -> str: ...

    @abstractmethod
    def load(self, token: str) -> SessionData: ...

    @abstractmethod
    def save(self, token: str, data: SessionData) -> None: ...

    @abstractmethod
    def destroy(self, token: str) -> None: ...

    @abstractmethod
    def purge_expired(self) -> int: ...

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Volatile backend
# ---------------------------------------------------------------------------


class MemorySessionStore(SessionStore):
    """In-process session store.

    Entries are (payload dict, expires_at) tuples. Payloads are stored as
    plain dicts and rebuilt on load, so callers never share a mutable
    SessionData with the store.
    """

    def __init__(self, ttl: int = _DEFAULT_TTL) -> None:
        super().__init__(ttl)
        self._entries: dict[str, tuple[dict, float]] = {}
        self._lock = threading.Lock()

    def create(self) -> str:
        token = generate_token()
        with self._lock:
            self._entries[token] = (SessionData().to_dict(), time.time() + self.ttl)
        return token

    def load(self, token: str) -> SessionData:
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                raise SessionNotFoundError(token)
            payload, expires_at = entry
            if expires_at <= time.time():
                del self._entries[token]
                raise SessionNotFoundError(token)
        return SessionData.from_dict(payload)

    def save(self, token: str, data: SessionData) -> None:
        with self._lock:
            self._entries[token] = (data.to_dict(), time.time() + self.ttl)

    def destroy(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [t for t, (_, expires_at) in self._entries.items() if expires_at <= now]
            for token in expired:
                del self._entries[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Shared backend
# ---------------------------------------------------------------------------

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("token", String(64), primary_key=True),
    Column("data", Text, nullable=False),  # JSON-encoded SessionData
    Column("created_at", Float, nullable=False),
    Column("expires_at", Float, nullable=False, index=True),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SharedSessionStore(SessionStore):
    """Session store backed by a SQL table reachable from every instance.

    Usage:
        store = SharedSessionStore("postgresql://user:pw@host/sessions")
        token = store.create()
        store.save(token, SessionData(user_id=str(user.id)))
        store.load(token).user_id
        store.close()
    """

    def __init__(self, db_url: str, ttl: int = _DEFAULT_TTL, timeout: float = 5.0) -> None:
        super().__init__(ttl)
        in_memory = "mode=memory" in db_url or ":memory:" in db_url
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout
        elif db_url.startswith("postgresql"):
            connect_args["connect_timeout"] = max(1, int(timeout))
        # In-memory SQLite gets SingletonThreadPool, which has no checkout timeout.
        if not in_memory:
            engine_kwargs["pool_timeout"] = timeout
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite") and not in_memory:
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc

    def create(self) -> str:
        token = generate_token()
        now = time.time()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _sessions.insert().values(
                        token=token,
                        data=json.dumps(SessionData().to_dict()),
                        created_at=now,
                        expires_at=now + self.ttl,
                    )
                )
        except SQLAlchemyError as exc:
            logger.error("Session create failed: %s", type(exc).__name__)
            raise StoreUnavailableError() from exc
        return token

    def load(self, token: str) -> SessionData:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    _sessions.select().where(
                        (_sessions.c.token == token) & (_sessions.c.expires_at > time.time())
                    )
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Session load failed: %s", type(exc).__name__)
            raise StoreUnavailableError() from exc
        if row is None:
            raise SessionNotFoundError(token)
        return _row_to_session_data(row)

    def save(self, token: str, data: SessionData) -> None:
        """Overwrite the payload for token, inserting the row if it is gone."""
        now = time.time()
        payload = json.dumps(data.to_dict())
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _sessions.update()
                    .where(_sessions.c.token == token)
                    .values(data=payload, expires_at=now + self.ttl)
                )
                if result.rowcount == 0:
                    conn.execute(
                        _sessions.insert().values(
                            token=token, data=payload, created_at=now, expires_at=now + self.ttl
                        )
                    )
        except IntegrityError:
            # A concurrent save inserted the row between our UPDATE and INSERT.
            self._overwrite(token, payload, now)
        except SQLAlchemyError as exc:
            logger.error("Session save failed: %s", type(exc).__name__)
            raise StoreUnavailableError() from exc

    def _overwrite(self, token: str, payload: str, now: float) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _sessions.update()
                    .where(_sessions.c.token == token)
                    .values(data=payload, expires_at=now + self.ttl)
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc

    def destroy(self, token: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(_sessions.delete().where(_sessions.c.token == token))
        except SQLAlchemyError as exc:
            logger.error("Session destroy failed: %s", type(exc).__name__)
            raise StoreUnavailableError() from exc

    def purge_expired(self) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= time.time()))
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc
        return result.rowcount

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(_sessions.select().limit(1))
        except SQLAlchemyError:
            logger.warning("Session store ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


def _row_to_session_data(row) -> SessionData:
    try:
        return SessionData.from_dict(json.loads(row.data))
    except (TypeError, ValueError, AttributeError):
        # Corrupt payload: behave as an empty session rather than crash the request.
        logger.warning("Discarding unreadable session payload")
        return SessionData()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_session_store(settings: Settings) -> SessionStore:
    """Select the session backend once at startup from SESSION_BACKEND."""
    if settings.session_backend == "shared":
        logger.info("Using shared session store")
        return SharedSessionStore(
            settings.resolved_session_store_url,
            ttl=settings.session_ttl_seconds,
            timeout=settings.session_store_timeout_seconds,
        )
    logger.info("Using in-memory session store (sessions are lost on restart)")
    return MemorySessionStore(ttl=settings.session_ttl_seconds)
