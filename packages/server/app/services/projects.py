"""
Project service layer: CRUD, the review lifecycle and analytics.

Lifecycle: pending → in_review → approved, with in_review → changes_requested
→ in_review as the rework loop. Students submit, faculty decide. A bare status
change never produces a notification.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import Conflict, InvalidTransition, NotFound, PermissionDenied, StorageFailure
from app.core.storage import ObjectStorage, StorageError
from app.models.document import Document
from app.models.feedback import Feedback
from app.models.milestone import Milestone
from app.models.profile import Profile
from app.models.project import Project
from app.models.review_assignment import FacultyReviewAssignment
from app.models.task import Task
from app.models.team import TeamMember
from app.services import intents
from projtrack_shared.schemas.common import (
    REVIEWER_ROLES,
    AssignmentStatus,
    DocumentStatus,
    ProjectStatus,
    Role,
    TaskPriority,
    TaskStatus,
)
from projtrack_shared.schemas.milestones import progress_percent
from projtrack_shared.schemas.projects import (
    ProjectAnalytics,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    validate_transition,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


async def team_id_for(session: AsyncSession, user_id: uuid.UUID) -> Optional[uuid.UUID]:
    """The team the user belongs to, if any (a student is in at most one)."""
    result = await session.execute(
        select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    )
    return result.scalars().first()


async def is_participant(session: AsyncSession, actor: Actor, project: Project) -> bool:
    """Owner, or a member of the team the project belongs to."""
    if project.student_id == actor.id:
        return True
    if project.team_id is None:
        return False
    return await team_id_for(session, actor.id) == project.team_id


async def ensure_can_view(session: AsyncSession, actor: Actor, project: Project) -> None:
    if actor.is_reviewer:
        return
    if not await is_participant(session, actor, project):
        raise PermissionDenied("You do not have access to this project")


async def ensure_participant(
    session: AsyncSession, actor: Actor, project: Project, action: str
) -> None:
    if not await is_participant(session, actor, project):
        raise PermissionDenied(f"Only the project's students can {action}")


async def enrich_projects(session: AsyncSession, projects: Sequence[Project]) -> list[ProjectRead]:
    """Attach the student name and milestone progress to each project."""
    if not projects:
        return []

    project_ids = [p.id for p in projects]
    student_ids = {p.student_id for p in projects}

    names_result = await session.execute(
        select(Profile.id, Profile.name).where(Profile.id.in_(student_ids))
    )
    names = {row.id: row.name for row in names_result}

    ms_result = await session.execute(
        select(Milestone).where(Milestone.project_id.in_(project_ids))
    )
    milestones = defaultdict(list)
    for m in ms_result.scalars().all():
        milestones[m.project_id].append(m)

    return [
        ProjectRead(
            id=p.id,
            title=p.title,
            description=p.description,
            student_id=p.student_id,
            team_id=p.team_id,
            status=p.status,
            student_name=names.get(p.student_id),
            milestone_count=len(milestones[p.id]),
            milestone_progress=progress_percent(milestones[p.id]),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )
        for p in projects
    ]


async def enrich_project(session: AsyncSession, project: Project) -> ProjectRead:
    return (await enrich_projects(session, [project]))[0]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(
    session: AsyncSession, actor: Optional[Actor], project_in: ProjectCreate
) -> Project:
    actor = ensure_role(actor, {Role.STUDENT}, "create a project")

    if project_in.team_id is not None:
        if await team_id_for(session, actor.id) != project_in.team_id:
            raise PermissionDenied("You can only create projects for your own team")

    project = Project(
        title=project_in.title,
        description=project_in.description,
        student_id=actor.id,
        team_id=project_in.team_id,
        status=ProjectStatus.PENDING.value,
    )
    session.add(project)
    await session.commit()
    await session.refresh(project)
    log.info("project.created", project_id=str(project.id), student_id=str(actor.id))
    return project


async def get_project(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> Project:
    actor = ensure_role(actor, Role, "view a project")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)
    return project


async def list_projects(
    session: AsyncSession,
    actor: Optional[Actor],
    *,
    status: Optional[ProjectStatus] = None,
    assigned: bool = False,
) -> list[Project]:
    """Students see their own and their team's projects; reviewers see all
    of them, or only those assigned to them when ``assigned`` is set."""
    actor = ensure_role(actor, Role, "list projects")

    stmt = select(Project)
    if actor.is_student:
        team_id = await team_id_for(session, actor.id)
        if team_id is not None:
            stmt = stmt.where(or_(Project.student_id == actor.id, Project.team_id == team_id))
        else:
            stmt = stmt.where(Project.student_id == actor.id)
    elif assigned:
        stmt = stmt.join(
            FacultyReviewAssignment,
            FacultyReviewAssignment.project_id == Project.id,
        ).where(
            func.lower(FacultyReviewAssignment.faculty_email) == actor.email.lower(),
            FacultyReviewAssignment.status != AssignmentStatus.REJECTED.value,
        )

    if status is not None:
        stmt = stmt.where(Project.status == status.value)

    stmt = stmt.order_by(Project.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().unique().all())


async def update_project(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
) -> Project:
    actor = ensure_role(actor, {Role.STUDENT, Role.ADMIN}, "edit a project")
    project = await get_project_or_404(session, project_id)

    if actor.is_student:
        await ensure_participant(session, actor, project, "edit it")
        if project.status == ProjectStatus.APPROVED.value:
            raise PermissionDenied("Approved projects can no longer be edited")

    data = project_in.model_dump(exclude_unset=True)
    if data.get("title") is None:
        data.pop("title", None)
    for key, value in data.items():
        setattr(project, key, value)

    session.add(project)
    await session.commit()
    await session.refresh(project)
    log.info("project.updated", project_id=str(project.id), fields=sorted(data))
    return project


async def delete_project(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    storage: ObjectStorage,
) -> None:
    """Owner-only, and only before the project has been submitted.

    Documents go one at a time, binary then row. If storage refuses one, the
    delete stops there: documents already removed stay removed, the rest and
    the project itself are kept.
    """
    actor = ensure_role(actor, {Role.STUDENT}, "delete a project")
    project = await get_project_or_404(session, project_id)
    if project.student_id != actor.id:
        raise PermissionDenied("Only the project owner can delete it")
    if project.status != ProjectStatus.PENDING.value:
        raise Conflict("Only pending projects can be deleted")

    docs_result = await session.execute(
        select(Document).where(Document.project_id == project.id)
    )
    for document in docs_result.scalars().all():
        try:
            await intents.remove_document(session, storage, actor.id, document)
        except StorageError as exc:
            log.error("project.delete_storage_failed", project_id=str(project.id), error=str(exc))
            raise StorageFailure(f"Could not remove stored file for '{document.name}'")

    for model in (Milestone, Feedback, FacultyReviewAssignment):
        await session.execute(delete(model).where(model.project_id == project.id))
    await session.execute(delete(Task).where(Task.project_id == project.id))
    await session.delete(project)
    await session.commit()
    log.info("project.deleted", project_id=str(project_id))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def transition_project(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    to_status: ProjectStatus,
) -> Project:
    """Move a project along its lifecycle. Refusals leave it untouched."""
    actor = ensure_role(actor, Role, "change a project's status")
    project = await get_project_or_404(session, project_id)

    current = ProjectStatus(project.status)
    is_valid, error_msg = validate_transition(current, to_status, actor.role)
    if not is_valid:
        raise InvalidTransition(error_msg)

    if actor.is_student:
        await ensure_participant(session, actor, project, "submit it for review")

    project.status = to_status.value
    session.add(project)
    await session.commit()
    await session.refresh(project)

    log.info(
        "project.transitioned",
        project_id=str(project.id),
        from_status=current.value,
        to_status=to_status.value,
        actor_id=str(actor.id),
    )
    return project


async def submit_for_review(
    session: AsyncSession, actor: Optional[Actor], project_id: uuid.UUID
) -> Project:
    return await transition_project(session, actor, project_id, ProjectStatus.IN_REVIEW)


async def decide(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    to_status: ProjectStatus,
) -> Project:
    """Faculty decision on a project under review."""
    ensure_role(actor, REVIEWER_ROLES, "review a project")
    if to_status not in (ProjectStatus.APPROVED, ProjectStatus.CHANGES_REQUESTED):
        raise InvalidTransition("A review must approve the project or request changes")
    return await transition_project(session, actor, project_id, to_status)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def _analytics_for(session: AsyncSession, project_ids: Optional[list[uuid.UUID]]) -> ProjectAnalytics:
    """Counts over the given projects, or over every project when None."""
    stats = ProjectAnalytics()
    if project_ids is not None and not project_ids:
        return stats

    def scoped(stmt, column):
        return stmt if project_ids is None else stmt.where(column.in_(project_ids))

    by_status = await session.execute(
        scoped(select(Project.status, func.count()).group_by(Project.status), Project.id)
    )
    for status, count in by_status.all():
        stats.total_projects += count
        setattr(stats, f"{status}_projects", count)

    tasks = await session.execute(
        scoped(select(Task.status, Task.priority, func.count()), Task.project_id)
        .group_by(Task.status, Task.priority)
    )
    for status, priority, count in tasks.all():
        stats.total_tasks += count
        if status == TaskStatus.COMPLETED.value:
            stats.completed_tasks += count
        else:
            stats.pending_tasks += count
        if priority == TaskPriority.HIGH.value:
            stats.high_priority_tasks += count

    docs = await session.execute(
        scoped(select(Document.status, func.count()), Document.project_id)
        .group_by(Document.status)
    )
    for status, count in docs.all():
        stats.total_documents += count
        if status == DocumentStatus.APPROVED.value:
            stats.approved_documents += count

    return stats


async def student_analytics(session: AsyncSession, actor: Optional[Actor]) -> ProjectAnalytics:
    actor = ensure_role(actor, {Role.STUDENT}, "view student analytics")
    projects = await list_projects(session, actor)
    return await _analytics_for(session, [p.id for p in projects])


async def faculty_analytics(session: AsyncSession, actor: Optional[Actor]) -> ProjectAnalytics:
    ensure_role(actor, REVIEWER_ROLES, "view faculty analytics")
    return await _analytics_for(session, None)
