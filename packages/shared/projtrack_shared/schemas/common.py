from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


# Roles allowed to act as reviewers
REVIEWER_ROLES = frozenset({Role.FACULTY, Role.ADMIN})


class ProjectStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"


PROJECT_TRANSITIONS: dict["ProjectStatus", list["ProjectStatus"]] = {
    ProjectStatus.PENDING: [ProjectStatus.IN_REVIEW],
    ProjectStatus.IN_REVIEW: [ProjectStatus.APPROVED, ProjectStatus.CHANGES_REQUESTED],
    ProjectStatus.CHANGES_REQUESTED: [ProjectStatus.IN_REVIEW],
    ProjectStatus.APPROVED: [],
}


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# A decision is final; repeating the same decision is allowed.
DOCUMENT_TRANSITIONS: dict["DocumentStatus", list["DocumentStatus"]] = {
    DocumentStatus.PENDING: [DocumentStatus.APPROVED, DocumentStatus.REJECTED],
    DocumentStatus.APPROVED: [DocumentStatus.APPROVED],
    DocumentStatus.REJECTED: [DocumentStatus.REJECTED],
}


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


TASK_TRANSITIONS: dict["TaskStatus", list["TaskStatus"]] = {
    TaskStatus.TODO: [TaskStatus.IN_PROGRESS],
    TaskStatus.IN_PROGRESS: [TaskStatus.TODO, TaskStatus.COMPLETED],
    TaskStatus.COMPLETED: [TaskStatus.IN_PROGRESS],  # reopen
}


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MilestoneState(str, Enum):
    NOT_STARTED = "not_started"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"


class TeamRole(str, Enum):
    LEADER = "leader"
    MEMBER = "member"


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


INVITE_TRANSITIONS: dict["InviteStatus", list["InviteStatus"]] = {
    InviteStatus.PENDING: [InviteStatus.ACCEPTED, InviteStatus.REJECTED],
    InviteStatus.ACCEPTED: [],
    InviteStatus.REJECTED: [],
}


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


ASSIGNMENT_TRANSITIONS: dict["AssignmentStatus", list["AssignmentStatus"]] = {
    AssignmentStatus.PENDING: [AssignmentStatus.ACCEPTED, AssignmentStatus.REJECTED],
    AssignmentStatus.ACCEPTED: [],
    AssignmentStatus.REJECTED: [],
}


class NotificationType(str, Enum):
    FEEDBACK = "feedback"
    STATUS_CHANGE = "status_change"
    TASK_ASSIGNED = "task_assigned"
    DEADLINE = "deadline"
    DOCUMENT_FEEDBACK = "document_feedback"
    TEAM_INVITE = "team_invite"
    TEAM_UPDATE = "team_update"
    MILESTONE_UPDATE = "milestone_update"
    REVIEW_ASSIGNMENT = "review_assignment"


class IntentKind(str, Enum):
    DOCUMENT_UPLOAD = "document_upload"
    MILESTONE_ATTACH = "milestone_attach"
    DOCUMENT_DELETE = "document_delete"


class IntentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    COMPENSATED = "compensated"


def check_transition(
    transitions: dict, current: Enum, target: Enum, entity: str
) -> tuple[bool, str]:
    """Check a status change against an allow-list.

    Returns (is_valid, error_message).
    """
    allowed = transitions.get(current, [])
    if target in allowed:
        return True, ""
    return False, (
        f"Cannot move {entity} from '{current.value}' to '{target.value}'. "
        f"Allowed: {[s.value for s in allowed]}"
    )

