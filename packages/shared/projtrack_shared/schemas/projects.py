from typing import Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from .common import PROJECT_TRANSITIONS, ProjectStatus, Role, check_transition


class ProjectBase(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None


class ProjectCreate(ProjectBase):
    team_id: Optional[UUID] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = None


class ProjectDecision(BaseModel):
    """Faculty decision on a project under review."""
    to_status: ProjectStatus


class ProjectRead(ProjectBase):
    id: UUID
    student_id: UUID
    team_id: Optional[UUID] = None
    status: ProjectStatus
    student_name: Optional[str] = None
    milestone_count: int = 0
    milestone_progress: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectAnalytics(BaseModel):
    total_projects: int = 0
    pending_projects: int = 0
    in_review_projects: int = 0
    changes_requested_projects: int = 0
    approved_projects: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    high_priority_tasks: int = 0
    total_documents: int = 0
    approved_documents: int = 0


# Which role may drive a project into each target status.
STATUS_ACTORS: dict[ProjectStatus, frozenset[Role]] = {
    ProjectStatus.IN_REVIEW: frozenset({Role.STUDENT}),
    ProjectStatus.APPROVED: frozenset({Role.FACULTY, Role.ADMIN}),
    ProjectStatus.CHANGES_REQUESTED: frozenset({Role.FACULTY, Role.ADMIN}),
}


def validate_transition(
    current: ProjectStatus, target: ProjectStatus, role: Role
) -> tuple[bool, str]:
    """Validate a project lifecycle transition for the acting role.

    Rules:
    - pending -> in_review (student submits)
    - in_review -> approved | changes_requested (faculty decides)
    - changes_requested -> in_review (student resubmits)
    - approved is terminal.

    Returns (is_valid, error_message).
    """
    if current == target:
        return False, f"Project is already {current.value}"

    ok, msg = check_transition(PROJECT_TRANSITIONS, current, target, "project")
    if not ok:
        return False, msg

    if role not in STATUS_ACTORS.get(target, frozenset()):
        return False, f"A {role.value} cannot move a project to {target.value}"

    return True, ""
