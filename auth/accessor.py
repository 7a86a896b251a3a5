"""
auth/accessor.py -- Per-request binding between a session token and the store.

Pattern: Unit of Work. The session middleware creates one SessionBinding per
request from the (signature-verified) inbound token. Handlers ask for either
view through the FastAPI dependencies in auth/dependencies.py:

  ReadableSession  -- get() only. Never writes back, never extends the TTL.
  WritableSession  -- get(), insert(), regenerate(), destroy(). Changes are
                      buffered and flushed by commit() once the response is
                      known to be successful.

Commit rules:
  destroy() called   -> every token this request touched is removed from the
                        store and the cookie is cleared. destroy() wins over
                        any insert() made earlier in the same request; insert()
                        after destroy() raises SessionDestroyedError.
  otherwise          -> payload saved under the current token (a new one from
                        store.create() when the caller had none, or after
                        regenerate()) and the token is re-delivered.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from auth.models import SessionData
from auth.sessions import SessionNotFoundError, SessionStore

logger = logging.getLogger("postgate.sessions")


class SessionDestroyedError(RuntimeError):
    """insert() was called after destroy() in the same request."""


@dataclass(frozen=True)
class CommitResult:
    """What the transport must do with the cookie after commit()."""

    token: str | None  # token to (re-)deliver; None when the session was destroyed
    destroyed: bool = False


class ReadableSession:
    def __init__(self, data: SessionData) -> None:
        self._data = data

    def get(self, name: str):
        """Return the payload field, or None when it is unset."""
        return self._data.get(name)


class WritableSession(ReadableSession):
    def __init__(self, store: SessionStore, token: str | None, data: SessionData) -> None:
        super().__init__(replace(data))
        self._store = store
        self._token = token
        self._retired: list[str] = []
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def insert(self, name: str, value) -> None:
        if self._destroyed:
            raise SessionDestroyedError("session was destroyed earlier in this request")
        self._data.set(name, value)

    def regenerate(self) -> None:
        """Issue a fresh token at commit and retire the current one.

        Called on sign-in so a token planted before authentication never
        becomes an authenticated one (session fixation).
        """
        if self._token is not None:
            self._retired.append(self._token)
            self._token = None

    def destroy(self) -> None:
        self._destroyed = True
        self._data = SessionData()

    def commit(self) -> CommitResult:
        for token in self._retired:
            self._store.destroy(token)
        if self._destroyed:
            if self._token is not None:
                self._store.destroy(self._token)
            return CommitResult(token=None, destroyed=True)
        if self._token is None:
            self._token = self._store.create()
        self._store.save(self._token, self._data)
        return CommitResult(token=self._token)


class SessionBinding:
    """Lazily loads the session for one request and hands out views on it."""

    def __init__(self, store: SessionStore, token: str | None) -> None:
        self.store = store
        self.token = token
        self._data: SessionData | None = None
        self._writable: WritableSession | None = None

    def _load(self) -> SessionData:
        if self._data is None:
            if self.token is None:
                self._data = SessionData()
            else:
                try:
                    self._data = self.store.load(self.token)
                except SessionNotFoundError:
                    # Expired or destroyed elsewhere; a writer will get a fresh token.
                    logger.debug("Inbound session token is no longer live")
                    self.token = None
                    self._data = SessionData()
        return self._data

    def readable(self) -> ReadableSession:
        if self._writable is not None:
            return ReadableSession(self._writable._data)
        return ReadableSession(self._load())

    def writable(self) -> WritableSession:
        if self._writable is None:
            data = self._load()
            self._writable = WritableSession(self.store, self.token, data)
        return self._writable

    @property
    def wants_commit(self) -> bool:
        return self._writable is not None

    def commit(self) -> CommitResult | None:
        if self._writable is None:
            return None
        return self._writable.commit()
