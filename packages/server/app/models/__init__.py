# SQLModel definitions, imported here so metadata is populated for Alembic and create_all.
from .base import UUIDMixin, TimestampMixin, CreatedAtMixin  # noqa: F401
from .profile import Profile  # noqa: F401
from .team import Team, TeamMember, TeamInvite  # noqa: F401
from .project import Project  # noqa: F401
from .task import Task  # noqa: F401
from .document import Document  # noqa: F401
from .milestone import Milestone  # noqa: F401
from .feedback import Feedback  # noqa: F401
from .notification import Notification  # noqa: F401
from .review_assignment import FacultyReviewAssignment  # noqa: F401
from .workflow_intent import WorkflowIntent  # noqa: F401
