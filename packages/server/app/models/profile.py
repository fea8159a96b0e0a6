"""Profile model: one row per registered person."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Profile(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "profiles"

    email: str = Field(nullable=False, unique=True, index=True)
    name: str = Field(nullable=False)
    role: str = Field(nullable=False, default="student")  # student | faculty | admin
    avatar_url: Optional[str] = None
