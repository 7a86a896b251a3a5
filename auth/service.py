"""
auth/service.py -- Sign-up, sign-in, sign-out and profile updates.

Routes call these functions with the stores and session view they got from
dependency injection; everything here raises core.errors types and never
builds HTTP responses.

Security:
  Sign-in answers an unknown email and a wrong password with the same
  Unauthorized error, and burns one argon2 verification on unknown emails so
  timing does not reveal which case happened. The two cases are still logged
  differently server-side.

  auth.passwords.hash_password is the only way a password_hash is produced.
  Profile updates re-hash new passwords; a plaintext value is never stored.

  A successful sign-in or sign-up regenerates the session token before the
  identity is written (session fixation).

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError

from auth.accessor import WritableSession
from auth.dependencies import IDENTITY_FIELD
from auth.models import User
from auth.passwords import burn_verify, hash_password, needs_rehash, verify_password
from auth.store import UserStore
from core.errors import ConflictError, NotFound, Unauthorized

logger = logging.getLogger("postgate.auth")

_BAD_CREDENTIALS = "Invalid email or password."


def _sign_in_session(session: WritableSession, user: User) -> None:
    session.regenerate()
    session.insert(IDENTITY_FIELD, str(user.id))


def signup(users: UserStore, session: WritableSession, email: str, password: str) -> User:
    """Register a new account and sign it in.

    Raises ConflictError if the email is already registered (including the
    race where a concurrent sign-up wins between the lookup and the insert).
    """
    if users.get_by_email(email) is not None:
        raise ConflictError("A user with that email already exists.")

    user = User(email=email, password_hash=hash_password(password))
    try:
        users.create_user(user)
    except IntegrityError as exc:
        raise ConflictError("A user with that email already exists.") from exc

    _sign_in_session(session, user)
    logger.info("Registered user %s", user.id)
    return user


def signin(users: UserStore, session: WritableSession, email: str, password: str) -> User:
    """Verify credentials and write the identity into the session.

    Raises Unauthorized for unknown email and wrong password alike.
    MalformedHashError propagates: a corrupt stored hash is an infrastructure
    problem, not a failed login.
    """
    user = users.get_by_email(email)
    if user is None:
        burn_verify(password)
        logger.warning("Sign-in failed: unknown email")
        raise Unauthorized(_BAD_CREDENTIALS)

    if not verify_password(password, user.password_hash):
        logger.warning("Sign-in failed: wrong password for user %s", user.id)
        raise Unauthorized(_BAD_CREDENTIALS)

    if needs_rehash(user.password_hash):
        users.update_user(user.id, password_hash=hash_password(password))
        logger.info("Upgraded password hash parameters for user %s", user.id)

    _sign_in_session(session, user)
    logger.info("User %s signed in", user.id)
    return user


def signout(session: WritableSession) -> None:
    """Destroy the session. Safe to call when there is no live session."""
    session.destroy()


def update_profile(users: UserStore, user_id: uuid.UUID, email: str, password: str = "") -> User:
    """Change the signed-in user's email and, when given, password.

    An empty password leaves the stored hash untouched.
    """
    if users.get_by_id(user_id) is None:
        raise NotFound("User not found.")

    owner = users.get_by_email(email)
    if owner is not None and owner.id != user_id:
        raise ConflictError("A user with that email already exists.")

    fields: dict = {"email": email}
    if password:
        fields["password_hash"] = hash_password(password)
    try:
        users.update_user(user_id, **fields)
    except IntegrityError as exc:
        raise ConflictError("A user with that email already exists.") from exc

    logger.info("Updated profile for user %s", user_id)
    return users.get_by_id(user_id)
