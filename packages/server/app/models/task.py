"""Task model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    priority: str = Field(nullable=False, default="medium")  # low | medium | high
    status: str = Field(nullable=False, default="todo")  # todo | in_progress | completed
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
