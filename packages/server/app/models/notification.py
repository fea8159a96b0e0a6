"""In-app notification, one recipient each."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Notification(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)
    type: str = Field(nullable=False)  # free-form; see NotificationType for known values
    is_read: bool = Field(default=False, nullable=False)
    related_id: Optional[uuid.UUID] = None
