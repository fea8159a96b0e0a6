"""Profile schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, UUID4

from .common import Role


class ProfileRead(BaseModel):
    id: UUID4
    email: str
    name: str
    role: Role
    avatar_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
