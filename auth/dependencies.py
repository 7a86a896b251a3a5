"""
auth/dependencies.py -- FastAPI Depends() helpers for sessions and identity.

The session middleware in api/main.py puts a SessionBinding on
request.state.session before any route runs. These helpers hand out views on
it and resolve "who is calling":

  readable_session()  -- ReadableSession; use when the handler only checks identity.
  writable_session()  -- WritableSession; the middleware commits it after a
                         successful response.
  current_identity()  -- pure lookup of user_id in a session, parsed as UUID.
  get_identity()      -- soft variant, returns None when anonymous.
  require_identity()  -- raises Unauthorized (401) when anonymous.

The dependencies are plain `def` functions so FastAPI runs them (and the
session load they trigger) on its thread pool.

Layer rule: no imports from api/ or posts/. fastapi is allowed because this
module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import Depends, Request

from auth.accessor import ReadableSession, SessionBinding, WritableSession
from core.errors import Unauthorized

logger = logging.getLogger("postgate.auth")

IDENTITY_FIELD = "user_id"


def get_session_binding(request: Request) -> SessionBinding:
    binding = getattr(request.state, "session", None)
    if binding is None:
        raise RuntimeError("Session middleware is not installed")
    return binding


def readable_session(request: Request) -> ReadableSession:
    return get_session_binding(request).readable()


def writable_session(request: Request) -> WritableSession:
    return get_session_binding(request).writable()


def current_identity(session: ReadableSession) -> uuid.UUID | None:
    """Return the signed-in user's id, or None.

    A stored value that does not parse as a UUID is treated as absent rather
    than raising -- a corrupt session must look anonymous, not crash the request.
    """
    raw = session.get(IDENTITY_FIELD)
    if raw is None:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.debug("Ignoring malformed identity in session payload")
        return None


def get_identity(session: ReadableSession = Depends(readable_session)) -> uuid.UUID | None:
    return current_identity(session)


def require_identity(identity: uuid.UUID | None = Depends(get_identity)) -> uuid.UUID:
    """Require a signed-in caller.

    Use as a FastAPI dependency:
        @router.post("/posts")
        def route(user_id: uuid.UUID = Depends(require_identity)): ...
    """
    if identity is None:
        raise Unauthorized()
    return identity
