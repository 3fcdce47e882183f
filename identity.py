"""
Caller identity from the auth provider's bearer token.

The token is decoded WITHOUT signature verification. The result only routes
authorization checks inside this service; the backend re-validates the same
token (forwarded verbatim) on every data call and enforces its own row-level
policies.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt

from database import UpstreamError
from schemas import TOURNAMENT_OWNERS

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: Optional[str] = None
    is_admin: bool = False
    email: Optional[str] = None


ANONYMOUS = Identity()


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve(token: Optional[str]) -> Identity:
    """Read subject, admin role and email claims. Never raises."""
    if not token:
        return ANONYMOUS
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        logger.info("Could not decode bearer token: %s", exc)
        return ANONYMOUS
    app_metadata = claims.get("app_metadata")
    role = app_metadata.get("role") if isinstance(app_metadata, dict) else None
    user_id = claims.get("sub")
    return Identity(
        user_id=str(user_id) if user_id else None,
        is_admin=role == ADMIN_ROLE,
        email=claims.get("email") or None,
    )


def can_edit(db, who: Identity, tournament_id: int) -> bool:
    """Admins may edit anything; everyone else needs an ownership record.

    Each call does a fresh lookup. A failed lookup counts as "not allowed".
    """
    if who.is_admin:
        return True
    if not who.user_id:
        return False
    try:
        owners = db.get_documents(
            TOURNAMENT_OWNERS,
            {"user_id": who.user_id, "tournament_id": tournament_id},
        )
    except UpstreamError:
        logger.warning("Ownership lookup failed for tournament %s", tournament_id, exc_info=True)
        return False
    return len(owners) > 0
