"""Project milestone model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Milestone(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "project_milestones"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    due_date: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    document_id: Optional[uuid.UUID] = Field(default=None, foreign_key="documents.id")
