"""
Team service layer: teams, memberships and invitations.

A student belongs to at most one team. The creator leads it; the leader
invites other students by email and may disband the team once it owns no
projects. Everyone else can only leave.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import Conflict, InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from app.models.profile import Profile
from app.models.project import Project
from app.models.team import Team, TeamInvite, TeamMember
from app.services.notifications import notify
from app.services.projects import list_projects
from projtrack_shared.schemas.common import (
    INVITE_TRANSITIONS,
    InviteStatus,
    NotificationType,
    Role,
    TeamRole,
    check_transition,
)
from projtrack_shared.schemas.teams import InviteRead, MyTeamRead, TeamCreate, TeamMemberRead, TeamRead

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_membership(session: AsyncSession, user_id: uuid.UUID) -> Optional[TeamMember]:
    result = await session.execute(select(TeamMember).where(TeamMember.user_id == user_id))
    return result.scalars().first()


async def get_team_or_404(session: AsyncSession, team_id: uuid.UUID) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found")
    return team


async def _profile_by_email(session: AsyncSession, email: str) -> Optional[Profile]:
    result = await session.execute(
        select(Profile).where(func.lower(Profile.email) == email.strip().lower())
    )
    return result.scalars().first()


async def _project_count(session: AsyncSession, team_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(Project).where(Project.team_id == team_id)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


async def create_team(
    session: AsyncSession, actor: Optional[Actor], team_in: TeamCreate
) -> Team:
    """Create a team led by the caller."""
    actor = ensure_role(actor, {Role.STUDENT}, "create a team")
    if await get_membership(session, actor.id) is not None:
        raise Conflict("You are already in a team")

    team = Team(name=team_in.name.strip(), creator_id=actor.id)
    session.add(team)
    await session.flush()
    session.add(TeamMember(team_id=team.id, user_id=actor.id, role=TeamRole.LEADER.value))
    await session.commit()
    await session.refresh(team)
    log.info("team.created", team_id=str(team.id), leader_id=str(actor.id))
    return team


async def get_my_team(session: AsyncSession, actor: Optional[Actor]) -> MyTeamRead:
    actor = ensure_role(actor, Role, "view your team")
    membership = await get_membership(session, actor.id)
    if membership is None:
        return MyTeamRead()

    team = await get_team_or_404(session, membership.team_id)
    result = await session.execute(
        select(TeamMember, Profile.name, Profile.email, Profile.avatar_url)
        .join(Profile, Profile.id == TeamMember.user_id)
        .where(TeamMember.team_id == team.id)
        .order_by(TeamMember.join_date)
    )
    members = [
        TeamMemberRead(
            id=m.id,
            team_id=m.team_id,
            user_id=m.user_id,
            role=m.role,
            join_date=m.join_date,
            name=name,
            email=email,
            avatar_url=avatar_url,
        )
        for m, name, email, avatar_url in result.all()
    ]
    return MyTeamRead(
        team=TeamRead.model_validate(team),
        members=members,
        role=membership.role,
    )


async def list_team_projects(
    session: AsyncSession, actor: Optional[Actor], team_id: uuid.UUID
) -> list[Project]:
    actor = ensure_role(actor, Role, "view team projects")
    await get_team_or_404(session, team_id)

    if actor.is_student:
        membership = await get_membership(session, actor.id)
        if membership is None or membership.team_id != team_id:
            raise PermissionDenied("You are not a member of this team")
        return [p for p in await list_projects(session, actor) if p.team_id == team_id]

    result = await session.execute(
        select(Project).where(Project.team_id == team_id).order_by(Project.created_at.desc())
    )
    return list(result.scalars().all())


async def leave_team(session: AsyncSession, actor: Optional[Actor]) -> str:
    """Leave the caller's team. A leader leaving disbands it.

    Disbanding is refused while the team still owns projects. Returns
    ``"left"`` or ``"disbanded"``.
    """
    actor = ensure_role(actor, {Role.STUDENT}, "leave a team")
    membership = await get_membership(session, actor.id)
    if membership is None:
        raise NotFound("You are not in a team")

    if membership.role != TeamRole.LEADER.value:
        await session.delete(membership)
        await session.commit()
        log.info("team.member_left", team_id=str(membership.team_id), user_id=str(actor.id))
        return "left"

    team_id = membership.team_id
    if await _project_count(session, team_id) > 0:
        raise Conflict("Cannot disband a team that still has projects")

    await session.execute(delete(TeamInvite).where(TeamInvite.team_id == team_id))
    await session.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
    await session.execute(delete(Team).where(Team.id == team_id))
    await session.commit()
    log.info("team.disbanded", team_id=str(team_id), leader_id=str(actor.id))
    return "disbanded"


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


async def invite_member(
    session: AsyncSession, actor: Optional[Actor], email: str
) -> TeamInvite:
    """Invite a student by email. Refusals create no invite."""
    actor = ensure_role(actor, {Role.STUDENT}, "invite team members")
    membership = await get_membership(session, actor.id)
    if membership is None or membership.role != TeamRole.LEADER.value:
        raise PermissionDenied("Only the team leader can invite members")

    invitee = await _profile_by_email(session, email)
    if invitee is None:
        raise NotFound("No user found with that email")
    if invitee.role != Role.STUDENT.value:
        raise ValidationFailed("Only students can be invited to a team")
    if await get_membership(session, invitee.id) is not None:
        raise Conflict("This user is already in a team")

    existing = await session.execute(
        select(TeamInvite.id).where(
            TeamInvite.team_id == membership.team_id,
            TeamInvite.invitee_id == invitee.id,
            TeamInvite.status == InviteStatus.PENDING.value,
        )
    )
    if existing.first() is not None:
        raise Conflict("An invitation is already pending for this user")

    team = await get_team_or_404(session, membership.team_id)
    invite = TeamInvite(
        team_id=team.id,
        inviter_id=actor.id,
        invitee_id=invitee.id,
        status=InviteStatus.PENDING.value,
    )
    session.add(invite)
    await session.commit()
    await session.refresh(invite)
    log.info("team.invited", invite_id=str(invite.id), team_id=str(team.id))

    await notify(
        session,
        user_id=invitee.id,
        title="Team Invitation",
        message=f'{actor.name or "A student"} invited you to join the team "{team.name}".',
        type=NotificationType.TEAM_INVITE,
        related_id=invite.id,
    )
    return invite


async def respond_to_invite(
    session: AsyncSession,
    actor: Optional[Actor],
    invite_id: uuid.UUID,
    accept: bool,
) -> TeamInvite:
    actor = ensure_role(actor, {Role.STUDENT}, "respond to invitations")
    invite = await session.get(TeamInvite, invite_id)
    if invite is None:
        raise NotFound("Invitation not found")
    if invite.invitee_id != actor.id:
        raise PermissionDenied("This invitation is not addressed to you")

    target = InviteStatus.ACCEPTED if accept else InviteStatus.REJECTED
    is_valid, error_msg = check_transition(
        INVITE_TRANSITIONS, InviteStatus(invite.status), target, "invitation"
    )
    if not is_valid:
        raise InvalidTransition(error_msg)

    team = await get_team_or_404(session, invite.team_id)
    if accept:
        if await get_membership(session, actor.id) is not None:
            raise Conflict("You are already in a team")
        session.add(TeamMember(team_id=team.id, user_id=actor.id, role=TeamRole.MEMBER.value))

    invite.status = target.value
    session.add(invite)
    await session.commit()
    await session.refresh(invite)
    log.info("team.invite_answered", invite_id=str(invite.id), status=invite.status)

    if accept:
        await notify(
            session,
            user_id=team.creator_id,
            title="Team Member Joined",
            message=f'{actor.name or "A student"} joined your team "{team.name}".',
            type=NotificationType.TEAM_UPDATE,
            related_id=team.id,
        )
    return invite


async def list_pending_invites(
    session: AsyncSession, actor: Optional[Actor]
) -> list[InviteRead]:
    """Invitations waiting on the caller, with team and inviter names."""
    actor = ensure_role(actor, Role, "view invitations")
    result = await session.execute(
        select(TeamInvite, Team.name, Profile.name)
        .join(Team, Team.id == TeamInvite.team_id)
        .join(Profile, Profile.id == TeamInvite.inviter_id)
        .where(
            TeamInvite.invitee_id == actor.id,
            TeamInvite.status == InviteStatus.PENDING.value,
        )
        .order_by(TeamInvite.created_at.desc())
    )
    return [
        InviteRead(
            id=inv.id,
            team_id=inv.team_id,
            inviter_id=inv.inviter_id,
            invitee_id=inv.invitee_id,
            status=inv.status,
            team_name=team_name,
            inviter_name=inviter_name,
            created_at=inv.created_at,
            updated_at=inv.updated_at,
        )
        for inv, team_name, inviter_name in result.all()
    ]
