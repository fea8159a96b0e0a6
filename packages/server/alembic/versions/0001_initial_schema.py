"""Initial project tracker schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # profiles
    op.create_table(
        "profiles",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="student"),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role IN ('student', 'faculty', 'admin')", name="ck_profiles_role"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    # teams
    op.create_table(
        "teams",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        _uuid("creator_id", sa.ForeignKey("profiles.id"), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "team_members",
        _uuid("id", primary_key=True),
        _uuid("team_id", sa.ForeignKey("teams.id"), nullable=False),
        _uuid("user_id", sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("join_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", name="uq_team_members_user"),
        sa.CheckConstraint("role IN ('leader', 'member')", name="ck_team_members_role"),
    )
    op.create_index("ix_team_members_team_id", "team_members", ["team_id"])

    op.create_table(
        "team_invites",
        _uuid("id", primary_key=True),
        _uuid("team_id", sa.ForeignKey("teams.id"), nullable=False),
        _uuid("inviter_id", sa.ForeignKey("profiles.id"), nullable=False),
        _uuid("invitee_id", sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'rejected')", name="ck_team_invites_status"),
    )
    op.create_index("ix_team_invites_team_id", "team_invites", ["team_id"])
    op.create_index("ix_team_invites_invitee_id", "team_invites", ["invitee_id"])

    # projects
    op.create_table(
        "projects",
        _uuid("id", primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _uuid("student_id", sa.ForeignKey("profiles.id"), nullable=False),
        _uuid("team_id", sa.ForeignKey("teams.id"), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'in_review', 'changes_requested', 'approved')",
            name="ck_projects_status",
        ),
    )
    op.create_index("ix_projects_student_id", "projects", ["student_id"])
    op.create_index("ix_projects_team_id", "projects", ["team_id"])

    # tasks
    op.create_table(
        "tasks",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("status", sa.Text(), nullable=False, server_default="todo"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_tasks_priority"),
        sa.CheckConstraint("status IN ('todo', 'in_progress', 'completed')", name="ck_tasks_status"),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])

    # documents
    op.create_table(
        "documents",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_type", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        _uuid("uploaded_by", sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("faculty_remarks", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_documents_status"),
    )
    op.create_index("ix_documents_project_id", "documents", ["project_id"])
    op.create_index("ix_documents_file_path", "documents", ["file_path"])

    # project_milestones
    op.create_table(
        "project_milestones",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("document_id", sa.ForeignKey("documents.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_project_milestones_project_id", "project_milestones", ["project_id"])

    # feedback
    op.create_table(
        "feedback",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        _uuid("faculty_id", sa.ForeignKey("profiles.id"), nullable=False),
        _uuid("task_id", sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_feedback_project_id", "feedback", ["project_id"])

    # notifications
    op.create_table(
        "notifications",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _uuid("related_id", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    # faculty_review_assignments
    op.create_table(
        "faculty_review_assignments",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("faculty_email", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')",
            name="ck_faculty_review_assignments_status",
        ),
    )
    op.create_index("ix_faculty_review_assignments_project_id", "faculty_review_assignments", ["project_id"])
    op.create_index("ix_faculty_review_assignments_faculty_email", "faculty_review_assignments", ["faculty_email"])

    # workflow_intents
    op.create_table(
        "workflow_intents",
        _uuid("id", primary_key=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        _uuid("actor_id", sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_workflow_intents_status_created", "workflow_intents", ["status", "created_at"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.drop_table("workflow_intents")
    op.drop_table("faculty_review_assignments")
    op.drop_table("notifications")
    op.drop_table("feedback")
    op.drop_table("project_milestones")
    op.drop_table("documents")
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("team_invites")
    op.drop_table("team_members")
    op.drop_table("teams")
    op.drop_table("profiles")
