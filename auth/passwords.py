"""
auth/passwords.py -- Password hashing and verification (argon2id).

Security design decisions:
  Algorithm: Argon2id via argon2-cffi. Memory-hard, salted, and the output is
       a self-describing PHC string carrying algorithm, version, cost
       parameters, salt and derived key:

           $argon2id$v=19$m=19456,t=2,p=1$<salt b64>$<hash b64>

  Parameters (fixed, change only together with a rehash rollout):
       time_cost=2, memory_cost=19456 KiB, parallelism=1, hash_len=32,
       salt_len=16. A fresh salt comes from os.urandom on every call.

  Errors: a wrong password is False, not an exception. An unparseable stored
       hash is MalformedHashError so data corruption surfaces distinctly.
       Library failures and timeouts are HashingError.

  Timeouts: hashing runs on a small worker pool and the caller waits at most
       HASH_TIMEOUT_SECONDS. The argon2 computation itself cannot be
       interrupted; the timeout bounds the request, not the worker.

  Timing equalization: _DUMMY_HASH is computed once at import so sign-in can
       spend the same work on unknown emails as on wrong passwords.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from argon2 import PasswordHasher, Type
from argon2 import exceptions as argon2_errors

from core.config import get_settings
from core.errors import HashingError, MalformedHashError

logger = logging.getLogger("postgate.auth")

TIME_COST = 2
MEMORY_COST_KIB = 19456
PARALLELISM = 1
HASH_LEN = 32
SALT_LEN = 16

_hasher = PasswordHasher(
    time_cost=TIME_COST,
    memory_cost=MEMORY_COST_KIB,
    parallelism=PARALLELISM,
    hash_len=HASH_LEN,
    salt_len=SALT_LEN,
    type=Type.ID,
)

# Each argon2 call holds ~19 MiB, so the pool is kept small.
_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="argon2")


def _run_bounded(fn, *args, timeout: float | None):
    if timeout is None:
        timeout = get_settings().hash_timeout_seconds
    future = _pool.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        logger.error("Password hashing exceeded %.1fs", timeout)
        raise HashingError("Password hashing timed out.") from exc


def hash_password(password: str, timeout: float | None = None) -> str:
    """Return an argon2id PHC string for password.

    Any string is accepted, including "". Rejecting empty passwords is a
    usage policy enforced by the request models, not a hashing failure.
    """
    try:
        return _run_bounded(_hasher.hash, password, timeout=timeout)
    except argon2_errors.HashingError as exc:
        logger.exception("argon2 failed to hash a password")
        raise HashingError() from exc


# libargon2 failures that are not about the stored string itself.
_RESOURCE_FAILURE_MESSAGES = ("memory allocation error", "threading failure")


def _is_resource_failure(exc: Exception) -> bool:
    text = str(exc).lower()
    return any(message in text for message in _RESOURCE_FAILURE_MESSAGES)


def verify_password(password: str, encoded_hash: str, timeout: float | None = None) -> bool:
    """Return True if password matches encoded_hash.

    Raises MalformedHashError if encoded_hash cannot be parsed, HashingError on
    library failure or timeout.
    """
    if not encoded_hash.isascii():
        raise MalformedHashError()
    try:
        return _run_bounded(_hasher.verify, encoded_hash, password, timeout=timeout)
    except argon2_errors.VerifyMismatchError:
        return False
    except argon2_errors.InvalidHashError as exc:
        raise MalformedHashError() from exc
    except argon2_errors.VerificationError as exc:
        if _is_resource_failure(exc):
            logger.exception("argon2 verification failed")
            raise HashingError("Password verification failed.") from exc
        # Prefix parsed but the rest did not: bad base64, truncated output,
        # out-of-range parameters.
        raise MalformedHashError() from exc


def needs_rehash(encoded_hash: str) -> bool:
    """True when encoded_hash was produced with parameters other than the current ones."""
    if not encoded_hash.isascii():
        raise MalformedHashError()
    try:
        return _hasher.check_needs_rehash(encoded_hash)
    except ValueError as exc:  # InvalidHashError included
        raise MalformedHashError() from exc


# Computed once so the first unknown-email sign-in is not measurably slower.
_DUMMY_HASH: str = _hasher.hash("postgate_timing_dummy")


def burn_verify(password: str) -> None:
    """Spend one verification's worth of work and discard the result."""
    verify_password(password, _DUMMY_HASH)
