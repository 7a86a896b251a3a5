"""
auth/tokens.py -- Session cookie signing and cookie helpers.

Security design decisions:
  Cookie value: the opaque session token serialized by itsdangerous
       URLSafeTimedSerializer (SECRET_KEY, salt "postgate.session"). The
       token is already unguessable; the signature lets the transport reject
       tampered, forged or over-age cookies before the session store is ever
       consulted. Any BadData (bad signature, expired timestamp, garbled
       payload) means "no session".

  SECRET_KEY: sourced from core.config.get_settings(). Supplied by the
       operator, never generated here.

  Cookie flags:
    httponly=True   -- JS cannot read the cookie (XSS mitigation).
    samesite="lax"  -- not sent on cross-site POST (CSRF mitigation).
    secure          -- only over HTTPS when SECURE_COOKIES=true.
    max_age         -- matches the session TTL so both expire together.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

from itsdangerous import BadData, URLSafeTimedSerializer

from core.config import get_settings

SESSION_SALT = "postgate.session"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=get_settings().secret_key, salt=SESSION_SALT)


def sign_token(token: str) -> str:
    """Return the cookie value for token."""
    return _serializer().dumps(token)


def unsign_token(value: str | None, max_age: int | None = None) -> str | None:
    """Return the token inside a signed cookie value, or None if it does not verify.

    max_age defaults to SESSION_TTL_SECONDS; an older signature is rejected
    even if the store entry were somehow still live.
    """
    if not value:
        return None
    if max_age is None:
        max_age = get_settings().session_ttl_seconds
    try:
        token = _serializer().loads(value, max_age=max_age)
    except BadData:
        return None
    if not isinstance(token, str) or not token:
        return None
    return token


def set_session_cookie(response, token: str) -> None:
    """Write the signed session token as an httpOnly cookie on the response."""
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        value=sign_token(token),
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response) -> None:
    settings = get_settings()
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )
