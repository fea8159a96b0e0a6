"""Faculty review assignments: who is asked to review which project."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import Conflict, InvalidTransition, NotFound, PermissionDenied, ValidationFailed
from app.models.profile import Profile
from app.models.project import Project
from app.models.review_assignment import FacultyReviewAssignment
from app.services.notifications import notify
from app.services.projects import ensure_can_view, ensure_participant, get_project_or_404
from projtrack_shared.schemas.common import (
    ASSIGNMENT_TRANSITIONS,
    AssignmentStatus,
    NotificationType,
    Role,
    check_transition,
)

log = structlog.get_logger()


async def _ensure_can_manage(session: AsyncSession, actor: Actor, project: Project) -> None:
    if actor.is_admin:
        return
    await ensure_participant(session, actor, project, "manage its reviewers")


async def get_assignment_or_404(
    session: AsyncSession, assignment_id: uuid.UUID
) -> FacultyReviewAssignment:
    assignment = await session.get(FacultyReviewAssignment, assignment_id)
    if assignment is None:
        raise NotFound("Review assignment not found")
    return assignment


async def assign_reviewer(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    faculty_email: str,
) -> FacultyReviewAssignment:
    actor = ensure_role(actor, {Role.STUDENT, Role.ADMIN}, "assign reviewers")
    project = await get_project_or_404(session, project_id)
    await _ensure_can_manage(session, actor, project)

    email = faculty_email.strip().lower()
    result = await session.execute(select(Profile).where(func.lower(Profile.email) == email))
    faculty = result.scalars().first()
    if faculty is None or faculty.role != Role.FACULTY.value:
        raise ValidationFailed("No faculty member found with that email")

    existing = await session.execute(
        select(FacultyReviewAssignment.id).where(
            FacultyReviewAssignment.project_id == project.id,
            func.lower(FacultyReviewAssignment.faculty_email) == email,
        )
    )
    if existing.first() is not None:
        raise Conflict("This faculty member is already assigned to the project")

    assignment = FacultyReviewAssignment(
        project_id=project.id,
        faculty_email=faculty.email,
        status=AssignmentStatus.PENDING.value,
    )
    session.add(assignment)
    await session.commit()
    await session.refresh(assignment)
    log.info("assignment.created", assignment_id=str(assignment.id), project_id=str(project.id))

    await notify(
        session,
        user_id=faculty.id,
        title="Review request",
        message=f'You have been asked to review "{project.title}".',
        type=NotificationType.REVIEW_ASSIGNMENT,
        related_id=project.id,
    )
    return assignment


async def respond_to_assignment(
    session: AsyncSession,
    actor: Optional[Actor],
    assignment_id: uuid.UUID,
    accept: bool,
) -> FacultyReviewAssignment:
    actor = ensure_role(actor, {Role.FACULTY}, "respond to review requests")
    assignment = await get_assignment_or_404(session, assignment_id)
    if assignment.faculty_email.lower() != actor.email.lower():
        raise PermissionDenied("This review request is not addressed to you")

    target = AssignmentStatus.ACCEPTED if accept else AssignmentStatus.REJECTED
    is_valid, error_msg = check_transition(
        ASSIGNMENT_TRANSITIONS, AssignmentStatus(assignment.status), target, "review assignment"
    )
    if not is_valid:
        raise InvalidTransition(error_msg)

    assignment.status = target.value
    session.add(assignment)
    await session.commit()
    await session.refresh(assignment)
    log.info("assignment.answered", assignment_id=str(assignment.id), status=assignment.status)
    return assignment


async def remove_assignment(
    session: AsyncSession, actor: Optional[Actor], assignment_id: uuid.UUID
) -> None:
    actor = ensure_role(actor, {Role.STUDENT, Role.ADMIN}, "remove reviewers")
    assignment = await get_assignment_or_404(session, assignment_id)
    project = await get_project_or_404(session, assignment.project_id)
    await _ensure_can_manage(session, actor, project)

    await session.delete(assignment)
    await session.commit()
    log.info("assignment.removed", assignment_id=str(assignment_id))


async def list_assignments(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> list[FacultyReviewAssignment]:
    actor = ensure_role(actor, Role, "view review assignments")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)

    result = await session.execute(
        select(FacultyReviewAssignment)
        .where(FacultyReviewAssignment.project_id == project_id)
        .order_by(FacultyReviewAssignment.created_at)
    )
    return list(result.scalars().all())
