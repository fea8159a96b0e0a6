"""Document schemas and review rules."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import DOCUMENT_TRANSITIONS, DocumentStatus, check_transition


class DocumentRead(BaseModel):
    id: UUID
    project_id: UUID
    name: str
    file_path: str
    file_type: str
    file_size: int
    uploaded_by: UUID
    status: DocumentStatus
    faculty_remarks: Optional[str] = None
    url: Optional[str] = None
    project_title: Optional[str] = None
    student_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentReview(BaseModel):
    """Request body for POST /documents/{documentId}/review."""
    status: DocumentStatus
    remarks: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("status")
    @classmethod
    def _decision_only(cls, v: DocumentStatus) -> DocumentStatus:
        if v == DocumentStatus.PENDING:
            raise ValueError("A review must approve or reject the document")
        return v


def validate_review(current: DocumentStatus, target: DocumentStatus) -> tuple[bool, str]:
    """A pending document may be approved or rejected; a decision is final."""
    return check_transition(DOCUMENT_TRANSITIONS, current, target, "document")
