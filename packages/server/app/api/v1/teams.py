"""
Team endpoints: my team, create, leave/disband, invitations.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.services import projects as project_service
from app.services import teams as team_service
from projtrack_shared.schemas.teams import (
    InviteCreate,
    InviteRead,
    InviteResponse,
    MyTeamRead,
    TeamCreate,
    TeamProjectsRead,
    TeamRead,
)

router = APIRouter()


@router.get("/teams/me", response_model=MyTeamRead)
async def get_my_team(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.get_my_team(session, actor)


@router.post("/teams", response_model=TeamRead, status_code=201)
async def create_team(
    team_in: TeamCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.create_team(session, actor, team_in)


@router.post("/teams/me/leave")
async def leave_team(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Leave the team; a leader leaving disbands it (only without projects)."""
    outcome = await team_service.leave_team(session, actor)
    return {"ok": True, "outcome": outcome}


@router.get("/teams/{team_id}/projects", response_model=TeamProjectsRead)
async def list_team_projects(
    team_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    projects = await team_service.list_team_projects(session, actor, team_id)
    return TeamProjectsRead(
        team_id=team_id,
        projects=await project_service.enrich_projects(session, projects),
    )


@router.post("/teams/me/invites", response_model=InviteRead, status_code=201)
async def invite_member(
    body: InviteCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    invite = await team_service.invite_member(session, actor, body.email)
    return InviteRead.model_validate(invite, from_attributes=True)


@router.get("/invites", response_model=List[InviteRead])
async def list_pending_invites(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await team_service.list_pending_invites(session, actor)


@router.post("/invites/{invite_id}/respond", response_model=InviteRead)
async def respond_to_invite(
    invite_id: uuid.UUID,
    body: InviteResponse,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    invite = await team_service.respond_to_invite(session, actor, invite_id, body.accept)
    return InviteRead.model_validate(invite, from_attributes=True)
