"""
Milestone service layer.

A milestone's state is derived: no document → not_started, document but no
completion → pending_approval, completion timestamp → completed. Faculty
approve and revoke; students attach documents.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import InvalidTransition, NotFound, PersistenceFailure
from app.core.storage import ObjectStorage
from app.models.milestone import Milestone
from app.models.project import Project
from app.services import intents
from app.services.documents import store_document
from app.services.notifications import notify
from app.services.projects import ensure_can_view, ensure_participant, get_project_or_404
from projtrack_shared.schemas.common import REVIEWER_ROLES, IntentKind, NotificationType, Role
from projtrack_shared.schemas.milestones import (
    MilestoneCreate,
    MilestoneProgress,
    MilestoneRead,
    MilestoneUpdate,
    is_overdue,
    milestone_state,
    progress_percent,
)

log = structlog.get_logger()


async def get_milestone_or_404(session: AsyncSession, milestone_id: uuid.UUID) -> Milestone:
    milestone = await session.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFound("Milestone not found")
    return milestone


def to_read(milestone: Milestone, now: Optional[datetime] = None) -> MilestoneRead:
    return MilestoneRead(
        id=milestone.id,
        project_id=milestone.project_id,
        title=milestone.title,
        description=milestone.description,
        due_date=milestone.due_date,
        completed_at=milestone.completed_at,
        document_id=milestone.document_id,
        state=milestone_state(milestone),
        overdue=is_overdue(milestone, now),
        created_at=milestone.created_at,
        updated_at=milestone.updated_at,
    )


def to_reads(milestones: Sequence[Milestone]) -> list[MilestoneRead]:
    now = datetime.now(timezone.utc)
    return [to_read(m, now) for m in milestones]


async def _notify_student(
    session: AsyncSession, milestone: Milestone, title: str, verb: str
) -> None:
    project = await session.get(Project, milestone.project_id)
    if project is None:
        return
    await notify(
        session,
        user_id=project.student_id,
        title=title,
        message=f'Milestone "{milestone.title}" has been {verb} by faculty.',
        type=NotificationType.MILESTONE_UPDATE,
        related_id=project.id,
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_milestones(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> list[Milestone]:
    """Milestones of a project, earliest due date first."""
    actor = ensure_role(actor, Role, "view milestones")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)

    result = await session.execute(
        select(Milestone)
        .where(Milestone.project_id == project_id)
        .order_by(Milestone.due_date)
    )
    return list(result.scalars().all())


async def create_milestone(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    milestone_in: MilestoneCreate,
) -> Milestone:
    actor = ensure_role(actor, REVIEWER_ROLES, "create milestones")
    await get_project_or_404(session, project_id)

    milestone = Milestone(
        project_id=project_id,
        title=milestone_in.title,
        description=milestone_in.description,
        due_date=milestone_in.due_date,
    )
    session.add(milestone)
    await session.commit()
    await session.refresh(milestone)
    log.info("milestone.created", milestone_id=str(milestone.id), project_id=str(project_id))
    return milestone


async def update_milestone(
    session: AsyncSession,
    actor: Optional[Actor],
    milestone_id: uuid.UUID,
    milestone_in: MilestoneUpdate,
) -> Milestone:
    ensure_role(actor, REVIEWER_ROLES, "edit milestones")
    milestone = await get_milestone_or_404(session, milestone_id)

    data = milestone_in.model_dump(exclude_unset=True)
    for key in ("title", "due_date"):
        if key in data and data[key] is None:
            del data[key]
    for key, value in data.items():
        setattr(milestone, key, value)

    session.add(milestone)
    await session.commit()
    await session.refresh(milestone)
    return milestone


async def delete_milestone(
    session: AsyncSession, actor: Optional[Actor], milestone_id: uuid.UUID
) -> None:
    ensure_role(actor, REVIEWER_ROLES, "delete milestones")
    milestone = await get_milestone_or_404(session, milestone_id)
    await session.delete(milestone)
    await session.commit()
    log.info("milestone.deleted", milestone_id=str(milestone_id))


# ---------------------------------------------------------------------------
# Completion workflow
# ---------------------------------------------------------------------------


async def attach_document(
    session: AsyncSession,
    actor: Optional[Actor],
    storage: ObjectStorage,
    milestone_id: uuid.UUID,
    *,
    file_name: str,
    content_type: str,
    data: bytes,
) -> Milestone:
    """Upload a document and link it to the milestone (→ pending_approval).

    If the link cannot be written the intent stays pending and the sweep
    links the already stored document later.
    """
    actor = ensure_role(actor, {Role.STUDENT}, "attach documents to milestones")
    milestone = await get_milestone_or_404(session, milestone_id)
    project = await get_project_or_404(session, milestone.project_id)
    await ensure_participant(session, actor, project, "attach milestone documents")

    if milestone.completed_at is not None:
        raise InvalidTransition("Milestone is already completed")

    document, intent = await store_document(
        session,
        actor,
        storage,
        project,
        file_name=file_name,
        content_type=content_type,
        data=data,
        kind=IntentKind.MILESTONE_ATTACH,
        extra={"milestone_id": str(milestone.id)},
    )

    try:
        milestone.document_id = document.id
        session.add(milestone)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        await session.refresh(intent)
        await intents.record_intent_error(session, intent, str(exc))
        raise PersistenceFailure(f"Could not link the document to the milestone: {exc}") from exc

    await intents.complete_intent(session, intent)
    await session.refresh(milestone)
    log.info(
        "milestone.document_attached",
        milestone_id=str(milestone.id),
        document_id=str(document.id),
    )
    return milestone


async def approve_milestone(
    session: AsyncSession, actor: Optional[Actor], milestone_id: uuid.UUID
) -> Milestone:
    actor = ensure_role(actor, REVIEWER_ROLES, "approve milestones")
    milestone = await get_milestone_or_404(session, milestone_id)

    if milestone.document_id is None:
        raise InvalidTransition("A milestone needs an attached document before it can be approved")
    if milestone.completed_at is not None:
        raise InvalidTransition("Milestone is already completed")

    milestone.completed_at = datetime.now(timezone.utc)
    session.add(milestone)
    await session.commit()
    await session.refresh(milestone)
    log.info("milestone.approved", milestone_id=str(milestone.id), reviewer_id=str(actor.id))

    await _notify_student(session, milestone, "Milestone approved", "approved")
    return milestone


async def revoke_approval(
    session: AsyncSession, actor: Optional[Actor], milestone_id: uuid.UUID
) -> Milestone:
    """Back to pending_approval; the attached document stays linked."""
    actor = ensure_role(actor, REVIEWER_ROLES, "revoke milestone approvals")
    milestone = await get_milestone_or_404(session, milestone_id)

    if milestone.completed_at is None:
        raise InvalidTransition("Milestone is not completed")

    milestone.completed_at = None
    session.add(milestone)
    await session.commit()
    await session.refresh(milestone)
    log.info("milestone.revoked", milestone_id=str(milestone.id), reviewer_id=str(actor.id))

    await _notify_student(session, milestone, "Milestone approval revoked", "marked incomplete")
    return milestone


async def milestone_progress(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> MilestoneProgress:
    milestones = await list_milestones(session, actor, project_id)
    return MilestoneProgress(
        project_id=project_id,
        total=len(milestones),
        completed=sum(1 for m in milestones if m.completed_at is not None),
        percent=progress_percent(milestones),
    )
