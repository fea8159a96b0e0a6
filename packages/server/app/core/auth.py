"""
Actor resolution and role checks.

Tokens are issued by the hosted identity provider and signed with a shared
secret; this module only verifies them and loads the matching profile. Every
service operation receives the resulting Actor explicitly.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import NotAuthenticated, PermissionDenied
from app.models.profile import Profile
from projtrack_shared.schemas.common import REVIEWER_ROLES, Role

log = structlog.get_logger()
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    profile_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token (used by local tooling and tests)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(profile_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Actor
# ---------------------------------------------------------------------------

class Actor:
    """The caller of a lifecycle operation: who they are and in what role."""

    def __init__(self, id: uuid.UUID, role: Role, email: str = "", name: str = ""):
        self.id = id
        self.role = Role(role)
        self.email = email
        self.name = name

    @classmethod
    def from_profile(cls, profile: Profile) -> "Actor":
        return cls(profile.id, Role(profile.role), profile.email, profile.name)

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __repr__(self) -> str:
        return f"Actor(id={self.id}, role={self.role.value})"


def ensure_role(actor: Optional[Actor], roles: Iterable[Role], action: str) -> Actor:
    """Raise unless the actor exists and holds one of ``roles``."""
    if actor is None:
        raise NotAuthenticated(f"You must be logged in to {action}")
    allowed = set(roles)
    if actor.role not in allowed:
        names = ", ".join(sorted(r.value for r in allowed))
        raise PermissionDenied(f"Only {names} users can {action}")
    return actor


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated("Missing bearer token")

    try:
        payload = decode_jwt(credentials.credentials)
        profile_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise NotAuthenticated("Invalid or expired session")

    profile = await session.get(Profile, profile_id)
    if profile is None:
        log.warning("auth.unknown_profile", profile_id=str(profile_id))
        raise NotAuthenticated("Profile not found for this session")

    return Actor.from_profile(profile)


async def require_student(actor: Actor = Depends(get_current_actor)) -> Actor:
    return ensure_role(actor, {Role.STUDENT}, "perform this action")


async def require_reviewer(actor: Actor = Depends(get_current_actor)) -> Actor:
    return ensure_role(actor, REVIEWER_ROLES, "perform this action")
