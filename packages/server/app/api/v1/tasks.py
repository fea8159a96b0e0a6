"""
Task endpoints.

Status columns: To do → In progress → Completed
- Completed tasks may be reopened (→ In progress)
- Tasks created by faculty notify the project's student
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.services import tasks as task_service
from projtrack_shared.schemas.common import TaskPriority, TaskStatus
from projtrack_shared.schemas.tasks import TaskCreate, TaskRead, TaskTransition, TaskUpdate

router = APIRouter()


@router.get("/projects/{project_id}/tasks", response_model=List[TaskRead])
async def list_tasks(
    project_id: uuid.UUID,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await task_service.list_tasks(
        session, actor, project_id, status=status, priority=priority
    )


@router.post("/projects/{project_id}/tasks", response_model=TaskRead, status_code=201)
async def create_task(
    project_id: uuid.UUID,
    task_in: TaskCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await task_service.create_task(session, actor, project_id, task_in)


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await task_service.update_task(session, actor, task_id, task_in)


@router.post("/tasks/{task_id}/transition", response_model=TaskRead)
async def transition_task(
    task_id: uuid.UUID,
    body: TaskTransition,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await task_service.transition_task(session, actor, task_id, body.to_status)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    await task_service.delete_task(session, actor, task_id)
    return {"ok": True}
