"""
Task service layer: project tasks and their status transitions.

Status columns: To do → In progress → Completed, with In progress → To do and
Completed → In progress (reopen) as the only ways back.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.errors import InvalidTransition, NotFound
from app.models.feedback import Feedback
from app.models.project import Project
from app.models.task import Task
from app.services.notifications import notify
from app.services.projects import ensure_can_view, ensure_participant, get_project_or_404
from projtrack_shared.schemas.common import NotificationType, Role, TaskPriority, TaskStatus
from projtrack_shared.schemas.tasks import TaskCreate, TaskUpdate, validate_task_transition

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    return task


async def _ensure_can_edit(
    session: AsyncSession, actor: Actor, project: Project, action: str
) -> None:
    """Reviewers may edit any task; students only those of their projects."""
    if actor.is_reviewer:
        return
    await ensure_participant(session, actor, project, action)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_tasks(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    *,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
) -> list[Task]:
    actor = ensure_role(actor, Role, "view tasks")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)

    stmt = select(Task).where(Task.project_id == project_id)
    if status:
        stmt = stmt.where(Task.status == status.value)
    if priority:
        stmt = stmt.where(Task.priority == priority.value)
    stmt = stmt.order_by(Task.created_at.desc())

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_task(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
    task_in: TaskCreate,
) -> Task:
    """Create a task in ``todo``. Faculty-created tasks notify the student."""
    actor = ensure_role(actor, Role, "create tasks")
    project = await get_project_or_404(session, project_id)
    await _ensure_can_edit(session, actor, project, "add tasks")

    task = Task(
        project_id=project.id,
        title=task_in.title,
        description=task_in.description,
        priority=task_in.priority.value,
        status=TaskStatus.TODO.value,
        due_date=task_in.due_date,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)
    log.info("task.created", task_id=str(task.id), project_id=str(project.id))

    if actor.is_reviewer:
        await notify(
            session,
            user_id=project.student_id,
            title="New task assigned",
            message=f'A new task "{task.title}" was added to "{project.title}".',
            type=NotificationType.TASK_ASSIGNED,
            related_id=project.id,
        )
    return task


async def update_task(
    session: AsyncSession,
    actor: Optional[Actor],
    task_id: uuid.UUID,
    task_in: TaskUpdate,
) -> Task:
    actor = ensure_role(actor, Role, "edit tasks")
    task = await get_task_or_404(session, task_id)
    project = await get_project_or_404(session, task.project_id)
    await _ensure_can_edit(session, actor, project, "edit its tasks")

    data = task_in.model_dump(exclude_unset=True)
    for key in ("title", "priority"):
        if key in data and data[key] is None:
            del data[key]
    if "priority" in data:
        data["priority"] = data["priority"].value

    for key, value in data.items():
        setattr(task, key, value)

    session.add(task)
    await session.commit()
    await session.refresh(task)
    return task


async def transition_task(
    session: AsyncSession,
    actor: Optional[Actor],
    task_id: uuid.UUID,
    to_status: TaskStatus,
) -> Task:
    actor = ensure_role(actor, Role, "move tasks")
    task = await get_task_or_404(session, task_id)
    project = await get_project_or_404(session, task.project_id)
    await _ensure_can_edit(session, actor, project, "move its tasks")

    current = TaskStatus(task.status)
    is_valid, error_msg = validate_task_transition(current, to_status)
    if not is_valid:
        raise InvalidTransition(error_msg)

    task.status = to_status.value
    session.add(task)
    await session.commit()
    await session.refresh(task)
    log.info(
        "task.transitioned",
        task_id=str(task.id),
        from_status=current.value,
        to_status=to_status.value,
    )
    return task


async def delete_task(
    session: AsyncSession, actor: Optional[Actor], task_id: uuid.UUID
) -> None:
    actor = ensure_role(actor, Role, "delete tasks")
    task = await get_task_or_404(session, task_id)
    project = await get_project_or_404(session, task.project_id)
    await _ensure_can_edit(session, actor, project, "delete its tasks")

    # Feedback outlives the task it pointed at.
    await session.execute(
        update(Feedback).where(Feedback.task_id == task.id).values(task_id=None)
    )
    await session.delete(task)
    await session.commit()
    log.info("task.deleted", task_id=str(task_id))
