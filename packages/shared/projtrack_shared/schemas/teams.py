"""Team, membership and invitation schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .common import InviteStatus, TeamRole
from .projects import ProjectRead


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class TeamRead(BaseModel):
    id: UUID
    name: str
    creator_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamMemberRead(BaseModel):
    id: UUID
    team_id: UUID
    user_id: UUID
    role: TeamRole
    join_date: datetime
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class MyTeamRead(BaseModel):
    """The caller's team, its members and the caller's role in it."""
    team: Optional[TeamRead] = None
    members: list[TeamMemberRead] = Field(default_factory=list)
    role: Optional[TeamRole] = None


class TeamProjectsRead(BaseModel):
    team_id: UUID
    projects: list[ProjectRead] = Field(default_factory=list)


class InviteCreate(BaseModel):
    email: EmailStr


class InviteResponse(BaseModel):
    accept: bool


class InviteRead(BaseModel):
    id: UUID
    team_id: UUID
    inviter_id: UUID
    invitee_id: UUID
    status: InviteStatus
    team_name: Optional[str] = None
    inviter_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
