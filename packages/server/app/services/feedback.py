"""Faculty feedback on projects. Rows are append-only."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import ValidationFailed
from app.models.feedback import Feedback
from app.models.profile import Profile
from app.models.task import Task
from app.services.notifications import notify
from app.services.projects import ensure_can_view, get_project_or_404
from projtrack_shared.schemas.common import REVIEWER_ROLES, NotificationType, Role
from projtrack_shared.schemas.reviews import FeedbackCreate, FeedbackRead

log = structlog.get_logger()


async def provide_feedback(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    feedback_in: FeedbackCreate,
) -> Feedback:
    actor = ensure_role(actor, REVIEWER_ROLES, "provide feedback")
    project = await get_project_or_404(session, project_id)

    if feedback_in.task_id is not None:
        task = await session.get(Task, feedback_in.task_id)
        if task is None or task.project_id != project.id:
            raise ValidationFailed("The task does not belong to this project")

    feedback = Feedback(
        project_id=project.id,
        faculty_id=actor.id,
        task_id=feedback_in.task_id,
        comment=feedback_in.comment,
    )
    session.add(feedback)
    await session.commit()
    await session.refresh(feedback)
    log.info("feedback.created", feedback_id=str(feedback.id), project_id=str(project.id))

    await notify(
        session,
        user_id=project.student_id,
        title="New feedback",
        message=f'{actor.name or "Faculty"} left feedback on "{project.title}".',
        type=NotificationType.FEEDBACK,
        related_id=project.id,
    )
    return feedback


async def list_feedback(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> list[FeedbackRead]:
    """Newest first, with the author's name and avatar."""
    actor = ensure_role(actor, Role, "view feedback")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)

    result = await session.execute(
        select(Feedback, Profile.name, Profile.avatar_url)
        .join(Profile, Profile.id == Feedback.faculty_id)
        .where(Feedback.project_id == project_id)
        .order_by(Feedback.created_at.desc())
    )
    return [
        FeedbackRead(
            id=fb.id,
            project_id=fb.project_id,
            faculty_id=fb.faculty_id,
            task_id=fb.task_id,
            comment=fb.comment,
            faculty_name=name,
            faculty_avatar_url=avatar_url,
            created_at=fb.created_at,
        )
        for fb, name, avatar_url in result.all()
    ]
