"""
api/routes/auth.py -- Sign-in and sign-out endpoints.

Routes:
  POST /signin   -- verify email/password; identity written into the session
  POST /signout  -- destroy the session; idempotent

Both take a WritableSession. The session middleware in api/main.py commits
it after a successful (< 400) response: the cookie is re-issued on sign-in
and cleared on sign-out. A failed sign-in (401) commits nothing.

Security:
  Unknown email and wrong password return the same 401 envelope.
  Cache-Control: no-store on sign-in responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import Credentials
from auth.accessor import WritableSession
from auth.dependencies import writable_session
from auth.service import signin as signin_user
from auth.service import signout as signout_session
from auth.store import UserStore

router = APIRouter()


@router.post("/signin", status_code=204)
def signin(
    request: Request,
    body: Credentials,
    session: WritableSession = Depends(writable_session),
) -> Response:
    """Authenticate with email and password; 204 and a fresh session cookie on success."""
    user_store: UserStore = request.app.state.user_store
    signin_user(user_store, session, body.email, body.password)
    resp = Response(status_code=204)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/signout", status_code=204)
def signout(session: WritableSession = Depends(writable_session)) -> Response:
    """End the session. Calling it without a live session is not an error."""
    signout_session(session)
    return Response(status_code=204)
