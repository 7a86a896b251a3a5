"""
API request and response models for postgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: flat JSON objects -- email/password for credentials,
title/text for posts.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import User
from posts.models import Post

# Deliberately loose: one "@" with something on each side. Deliverability is
# not this layer's problem.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"

# Surrounding whitespace is stripped from emails only; passwords are taken verbatim.
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255, pattern=EMAIL_PATTERN)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /users and POST /signin.

    Empty passwords are rejected here as a usage policy; the hasher itself
    would accept them.
    """

    email: Email
    password: str = Field(min_length=1, max_length=1024)


class ProfileUpdate(BaseModel):
    """Request body for PUT /users. An empty password keeps the current one."""

    email: Email
    password: str = Field(default="", max_length=1024)


class PostForm(BaseModel):
    """Request body for POST /posts and PUT /posts/{post_id}."""

    title: str = Field(min_length=1, max_length=255)
    text: str = Field(max_length=65535)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A user as seen by clients -- never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.to_public())


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    text: str
    user_id: str
    created_at: str

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(**post.to_public())


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
