"""Profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.core.errors import NotFound
from app.models.profile import Profile
from projtrack_shared.schemas.profiles import ProfileRead

router = APIRouter()


@router.get("/me", response_model=ProfileRead)
async def get_me(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """The caller's own profile."""
    profile = await session.get(Profile, actor.id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile
