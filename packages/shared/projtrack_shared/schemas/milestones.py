"""Milestone schemas plus the derived state, progress and overdue helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol
from uuid import UUID

from pydantic import BaseModel, Field

from .common import MilestoneState


class MilestoneLike(Protocol):
    due_date: datetime
    completed_at: Optional[datetime]
    document_id: Optional[UUID]


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    due_date: datetime


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None
    due_date: Optional[datetime] = None


class MilestoneRead(BaseModel):
    id: UUID
    project_id: UUID
    title: str
    description: Optional[str] = None
    due_date: datetime
    completed_at: Optional[datetime] = None
    document_id: Optional[UUID] = None
    state: MilestoneState
    overdue: bool
    created_at: datetime
    updated_at: datetime


class MilestoneProgress(BaseModel):
    project_id: UUID
    total: int
    completed: int
    percent: int


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def milestone_state(milestone: MilestoneLike) -> MilestoneState:
    if milestone.completed_at is not None:
        return MilestoneState.COMPLETED
    if milestone.document_id is not None:
        return MilestoneState.PENDING_APPROVAL
    return MilestoneState.NOT_STARTED


def is_overdue(milestone: MilestoneLike, now: Optional[datetime] = None) -> bool:
    """Incomplete and due strictly in the past."""
    if milestone.completed_at is not None:
        return False
    now = as_utc(now or datetime.now(timezone.utc))
    return now > as_utc(milestone.due_date)


def progress_percent(milestones: Iterable[MilestoneLike]) -> int:
    items = list(milestones)
    if not items:
        return 0
    done = sum(1 for m in items if m.completed_at is not None)
    # Half rounds up (12.5 -> 13).
    return (200 * done + len(items)) // (2 * len(items))
