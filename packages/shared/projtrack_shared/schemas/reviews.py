"""Feedback and faculty review assignment schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .common import AssignmentStatus


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------

class FeedbackCreate(BaseModel):
    comment: str = Field(min_length=1, max_length=10000)
    task_id: Optional[UUID] = None


class FeedbackRead(BaseModel):
    id: UUID
    project_id: UUID
    faculty_id: UUID
    task_id: Optional[UUID] = None
    comment: str
    faculty_name: Optional[str] = None
    faculty_avatar_url: Optional[str] = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Faculty review assignments
# ---------------------------------------------------------------------------

class AssignmentCreate(BaseModel):
    faculty_email: EmailStr


class AssignmentResponse(BaseModel):
    accept: bool


class AssignmentRead(BaseModel):
    id: UUID
    project_id: UUID
    faculty_email: str
    status: AssignmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
