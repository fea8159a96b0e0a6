"""Faculty review assignment for a project."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class FacultyReviewAssignment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "faculty_review_assignments"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    faculty_email: str = Field(nullable=False, index=True)
    status: str = Field(nullable=False, default="pending")  # pending | accepted | rejected
