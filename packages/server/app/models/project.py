"""Project model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    title: str = Field(nullable=False)
    description: Optional[str] = None
    student_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    status: str = Field(nullable=False, default="pending")  # pending | in_review | changes_requested | approved
