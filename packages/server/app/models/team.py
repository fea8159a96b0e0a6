"""Teams, memberships and invitations."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"

    name: str = Field(nullable=False)
    creator_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)


class TeamMember(UUIDMixin, SQLModel, table=True):
    __tablename__ = "team_members"
    __table_args__ = (sa.UniqueConstraint("user_id", name="uq_team_members_user"),)

    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)
    role: str = Field(nullable=False, default="member")  # leader | member
    join_date: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class TeamInvite(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "team_invites"

    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True)
    inviter_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)
    invitee_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    status: str = Field(nullable=False, default="pending")  # pending | accepted | rejected
