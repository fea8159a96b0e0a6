"""Uploaded project document (binary lives in object storage)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Document(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "documents"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    file_path: str = Field(nullable=False, index=True)
    file_type: str = Field(nullable=False, default="application/octet-stream")
    file_size: int = Field(nullable=False, default=0)
    uploaded_by: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)
    status: str = Field(nullable=False, default="pending")  # pending | approved | rejected
    faculty_remarks: Optional[str] = None
