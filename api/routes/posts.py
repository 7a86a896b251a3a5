"""
api/routes/posts.py -- Post CRUD endpoints.

Routes:
  GET    /posts             -- list all posts (public)
  POST   /posts             -- create a post owned by the caller (requires sign-in)
  GET    /posts/{post_id}   -- single post (public)
  PUT    /posts/{post_id}   -- replace title/text (owner only)
  DELETE /posts/{post_id}   -- delete (owner only)

Auth policy:
  PUT and DELETE run through auth.ownership.authorize_mutation before the
  store is touched: 404 for a missing post regardless of who is asking, then
  401 for anonymous callers, then 403 for non-owners.
"""

from __future__ import annotations

import uuid
from operator import attrgetter

from fastapi import APIRouter, Depends, Request, Response

from api.models import PostForm, PostResponse
from auth.dependencies import get_identity, require_identity
from auth.ownership import authorize_mutation
from auth.store import UserStore
from core.errors import NotFound
from posts.models import Post
from posts.store import PostStore

router = APIRouter()


@router.get("/posts", response_model=list[PostResponse])
def list_posts(request: Request) -> list[PostResponse]:
    post_store: PostStore = request.app.state.post_store
    return [PostResponse.from_post(p) for p in post_store.list_posts()]


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostForm,
    identity: uuid.UUID = Depends(require_identity),
) -> PostResponse:
    """Create a post owned by the signed-in user.

    404 if the session still names a user that has since been deleted.
    """
    user_store: UserStore = request.app.state.user_store
    post_store: PostStore = request.app.state.post_store
    if user_store.get_by_id(identity) is None:
        raise NotFound("User not found.")
    post = post_store.create_post(Post(title=body.title, text=body.text, user_id=identity))
    return PostResponse.from_post(post)


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(request: Request, post_id: int) -> PostResponse:
    post_store: PostStore = request.app.state.post_store
    post = post_store.get_by_id(post_id)
    if post is None:
        raise NotFound("Post not found.")
    return PostResponse.from_post(post)


@router.put("/posts/{post_id}", status_code=204)
def update_post(
    request: Request,
    post_id: int,
    body: PostForm,
    identity: uuid.UUID | None = Depends(get_identity),
) -> Response:
    post_store: PostStore = request.app.state.post_store
    post = authorize_mutation(post_store.get_by_id(post_id), identity, owner_of=attrgetter("user_id"), kind="Post")
    post_store.update_post(post.id, title=body.title, text=body.text)
    return Response(status_code=204)


@router.delete("/posts/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: int,
    identity: uuid.UUID | None = Depends(get_identity),
) -> Response:
    post_store: PostStore = request.app.state.post_store
    post = authorize_mutation(post_store.get_by_id(post_id), identity, owner_of=attrgetter("user_id"), kind="Post")
    post_store.delete_post(post.id)
    return Response(status_code=204)
