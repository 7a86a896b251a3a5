"""
api/routes/users.py -- Account endpoints.

Routes:
  POST   /users             -- sign up; auto sign-in (writable session)
  GET    /users             -- current user (requires sign-in)
  PUT    /users             -- update current user's email/password (requires sign-in)
  GET    /users/{user_id}   -- public profile lookup
  DELETE /users/{user_id}   -- delete own account and its posts (owner only)

Auth policy:
  DELETE /users/{user_id} goes through the ownership gate: 404 if the user
  does not exist, 401 if anonymous, 403 if the caller is someone else.
"""

from __future__ import annotations

import uuid
from operator import attrgetter

from fastapi import APIRouter, Depends, Request, Response

from api.models import Credentials, ProfileUpdate, UserResponse
from auth.accessor import WritableSession
from auth.dependencies import current_identity, get_identity, require_identity, writable_session
from auth.ownership import authorize_mutation
from auth.service import signup, update_profile
from auth.store import UserStore
from core.errors import NotFound, Unauthorized
from posts.store import PostStore

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: Credentials,
    session: WritableSession = Depends(writable_session),
) -> UserResponse:
    """Register a new account and sign it in. 409 if the email is taken."""
    user_store: UserStore = request.app.state.user_store
    user = signup(user_store, session, body.email, body.password)
    return UserResponse.from_user(user)


@router.get("/users", response_model=UserResponse)
def get_current_user(
    request: Request,
    identity: uuid.UUID | None = Depends(get_identity),
) -> UserResponse:
    """Return the signed-in user. 404 if the account was deleted meanwhile."""
    if identity is None:
        raise Unauthorized()
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity)
    if user is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(user)


@router.put("/users", status_code=204)
def update_current_user(
    request: Request,
    body: ProfileUpdate,
    identity: uuid.UUID = Depends(require_identity),
) -> Response:
    user_store: UserStore = request.app.state.user_store
    update_profile(user_store, identity, body.email, body.password)
    return Response(status_code=204)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: uuid.UUID) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(user)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: uuid.UUID,
    session: WritableSession = Depends(writable_session),
) -> Response:
    """Delete the caller's own account, its posts, and the caller's session."""
    user_store: UserStore = request.app.state.user_store
    post_store: PostStore = request.app.state.post_store

    user = authorize_mutation(
        user_store.get_by_id(user_id),
        current_identity(session),
        owner_of=attrgetter("id"),
        kind="User",
    )
    post_store.delete_by_owner(user.id)
    user_store.delete_user(user.id)
    session.destroy()
    return Response(status_code=204)
