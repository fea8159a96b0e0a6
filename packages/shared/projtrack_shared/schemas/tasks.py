"""Task-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import UUID4

from .common import TASK_TRANSITIONS, TaskPriority, TaskStatus, check_transition


class TaskBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None


class TaskCreate(TaskBase):
    pass


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None


class TaskRead(BaseModel):
    id: UUID4
    project_id: UUID4
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskTransition(BaseModel):
    """Request body for POST /tasks/{taskId}/transition."""
    to_status: TaskStatus


def validate_task_transition(current: TaskStatus, target: TaskStatus) -> tuple[bool, str]:
    return check_transition(TASK_TRANSITIONS, current, target, "task")
