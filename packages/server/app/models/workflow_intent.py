"""Intent record for multi-step writes (upload-then-insert, upload-then-link, ...)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class WorkflowIntent(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workflow_intents"

    kind: str = Field(nullable=False, index=True)  # document_upload | milestone_attach | document_delete
    status: str = Field(nullable=False, default="pending", index=True)  # pending | completed | compensated
    actor_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False)
    payload: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    error: Optional[str] = None
