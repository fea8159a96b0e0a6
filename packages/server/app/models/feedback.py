"""Faculty feedback (append-only)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Feedback(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "feedback"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    faculty_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)
    task_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tasks.id")
    comment: str = Field(nullable=False)
