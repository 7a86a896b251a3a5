"""
auth/ownership.py -- Ownership gate for mutating routes.

Every PUT/DELETE that targets an owned resource goes through
authorize_mutation() before touching the store. The checks run in a fixed
order so responses never leak more than they should:

  1. resource missing          -> NotFound      (404, whoever is calling)
  2. caller not signed in      -> Unauthorized  (401)
  3. caller is not the owner   -> Forbidden     (403)

Layer rule: no imports from api/ or posts/. Callers pass the owner accessor,
so this module does not need to know the resource type.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import TypeVar

from core.errors import Forbidden, NotFound, Unauthorized

logger = logging.getLogger("postgate.auth")

T = TypeVar("T")


def authorize_mutation(
    resource: T | None,
    identity: uuid.UUID | None,
    owner_of: Callable[[T], uuid.UUID],
    kind: str = "Resource",
) -> T:
    """Return resource if identity owns it, otherwise raise the matching error."""
    if resource is None:
        raise NotFound(f"{kind} not found.")
    if identity is None:
        raise Unauthorized()
    if owner_of(resource) != identity:
        logger.info("Denied %s mutation by non-owner %s", kind.lower(), identity)
        raise Forbidden(f"You do not own this {kind.lower()}.")
    return resource
