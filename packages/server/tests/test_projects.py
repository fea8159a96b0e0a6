"""
Tests for the project lifecycle state machine and project service.

Tests cover:
- Transition allow-list and role checks
- Submit / decide through the service layer
- Approved projects are closed to student edits
- No notification on a bare status change
- Listing scope and analytics
"""

from __future__ import annotations

import pytest
from sqlmodel import select

from app.core.errors import (
    Conflict,
    InvalidTransition,
    NotAuthenticated,
    PermissionDenied,
    StorageFailure,
)
from app.core.storage import StorageError
from app.models.document import Document
from app.models.project import Project
from app.services import documents as document_service
from app.services import projects as project_service
from app.services import tasks as task_service
from projtrack_shared.schemas.common import PROJECT_TRANSITIONS, ProjectStatus, Role, TaskPriority
from projtrack_shared.schemas.projects import ProjectCreate, ProjectUpdate, validate_transition
from projtrack_shared.schemas.tasks import TaskCreate


# ---------------------------------------------------------------------------
# Unit tests for the lifecycle state machine
# ---------------------------------------------------------------------------


class TestLifecycleStateMachine:
    """Test the validate_transition function directly."""

    def test_student_submits_pending(self):
        valid, msg = validate_transition(ProjectStatus.PENDING, ProjectStatus.IN_REVIEW, Role.STUDENT)
        assert valid, msg

    def test_faculty_decisions(self):
        for target in (ProjectStatus.APPROVED, ProjectStatus.CHANGES_REQUESTED):
            valid, msg = validate_transition(ProjectStatus.IN_REVIEW, target, Role.FACULTY)
            assert valid, msg

    def test_resubmit_after_changes(self):
        valid, _ = validate_transition(
            ProjectStatus.CHANGES_REQUESTED, ProjectStatus.IN_REVIEW, Role.STUDENT
        )
        assert valid

    def test_student_cannot_approve(self):
        valid, msg = validate_transition(ProjectStatus.IN_REVIEW, ProjectStatus.APPROVED, Role.STUDENT)
        assert not valid
        assert "student" in msg

    def test_faculty_cannot_submit(self):
        valid, _ = validate_transition(ProjectStatus.PENDING, ProjectStatus.IN_REVIEW, Role.FACULTY)
        assert not valid

    def test_skip_review_rejected(self):
        valid, msg = validate_transition(ProjectStatus.PENDING, ProjectStatus.APPROVED, Role.FACULTY)
        assert not valid
        assert "Allowed" in msg

    def test_same_status_rejected(self):
        valid, msg = validate_transition(ProjectStatus.IN_REVIEW, ProjectStatus.IN_REVIEW, Role.STUDENT)
        assert not valid
        assert "already" in msg.lower()

    def test_approved_is_terminal(self):
        assert PROJECT_TRANSITIONS[ProjectStatus.APPROVED] == []
        for target in ProjectStatus:
            for role in Role:
                valid, _ = validate_transition(ProjectStatus.APPROVED, target, role)
                assert not valid

    def test_every_status_has_transitions_entry(self):
        for status in ProjectStatus:
            assert status in PROJECT_TRANSITIONS


# ---------------------------------------------------------------------------
# Service tests
# ---------------------------------------------------------------------------


async def _create(session, actor, title="Solar Tracker") -> Project:
    return await project_service.create_project(
        session, actor, ProjectCreate(title=title, description="Arduino based")
    )


class TestProjectService:
    @pytest.mark.asyncio
    async def test_create_starts_pending(self, session, student):
        project = await _create(session, student)
        assert project.status == ProjectStatus.PENDING.value
        assert project.student_id == student.id

    @pytest.mark.asyncio
    async def test_faculty_cannot_create(self, session, faculty):
        with pytest.raises(PermissionDenied):
            await _create(session, faculty)

    @pytest.mark.asyncio
    async def test_anonymous_refused(self, session):
        with pytest.raises(NotAuthenticated):
            await _create(session, None)

    @pytest.mark.asyncio
    async def test_full_review_loop(self, session, student, faculty, published):
        project = await _create(session, student)

        project = await project_service.submit_for_review(session, student, project.id)
        assert project.status == ProjectStatus.IN_REVIEW.value

        project = await project_service.decide(
            session, faculty, project.id, ProjectStatus.CHANGES_REQUESTED
        )
        assert project.status == ProjectStatus.CHANGES_REQUESTED.value

        project = await project_service.submit_for_review(session, student, project.id)
        project = await project_service.decide(session, faculty, project.id, ProjectStatus.APPROVED)
        assert project.status == ProjectStatus.APPROVED.value

        # Status changes alone never notify anyone.
        published.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_transition_leaves_state(self, session, student, faculty):
        project = await _create(session, student)
        with pytest.raises(InvalidTransition):
            await project_service.decide(session, faculty, project.id, ProjectStatus.APPROVED)
        refreshed = await session.get(Project, project.id)
        assert refreshed.status == ProjectStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_student_cannot_decide(self, session, student):
        project = await _create(session, student)
        await project_service.submit_for_review(session, student, project.id)
        with pytest.raises(PermissionDenied):
            await project_service.decide(session, student, project.id, ProjectStatus.APPROVED)

    @pytest.mark.asyncio
    async def test_other_student_cannot_submit(self, session, student, other_student):
        project = await _create(session, student)
        with pytest.raises(PermissionDenied):
            await project_service.submit_for_review(session, other_student, project.id)

    @pytest.mark.asyncio
    async def test_approved_blocks_student_edits(self, session, student, faculty):
        project = await _create(session, student)
        await project_service.submit_for_review(session, student, project.id)
        await project_service.decide(session, faculty, project.id, ProjectStatus.APPROVED)

        with pytest.raises(PermissionDenied):
            await project_service.update_project(
                session, student, project.id, ProjectUpdate(title="Renamed")
            )

    @pytest.mark.asyncio
    async def test_update_while_pending(self, session, student):
        project = await _create(session, student)
        updated = await project_service.update_project(
            session, student, project.id, ProjectUpdate(description="Now with GPS")
        )
        assert updated.description == "Now with GPS"
        assert updated.title == "Solar Tracker"

    @pytest.mark.asyncio
    async def test_delete_only_pending(self, session, student, storage):
        project = await _create(session, student)
        await project_service.submit_for_review(session, student, project.id)
        with pytest.raises(Conflict):
            await project_service.delete_project(session, student, project.id, storage)

    @pytest.mark.asyncio
    async def test_delete_pending(self, session, student, storage):
        project = await _create(session, student)
        await project_service.delete_project(session, student, project.id, storage)
        assert await session.get(Project, project.id) is None

    @pytest.mark.asyncio
    async def test_delete_stops_at_first_storage_failure(self, session, student, storage):
        project = await _create(session, student)
        for name in ("a.pdf", "b.pdf"):
            await document_service.upload_document(
                session, student, storage, project.id,
                file_name=name, content_type="application/pdf", data=b"%PDF",
            )

        real_remove = storage.remove
        calls = []

        async def remove_once(path):
            calls.append(path)
            if len(calls) > 1:
                raise StorageError("bucket unavailable")
            await real_remove(path)

        storage.remove = remove_once
        with pytest.raises(StorageFailure):
            await project_service.delete_project(session, student, project.id, storage)

        rows = (await session.execute(select(Document))).scalars().all()
        assert len(rows) == 1
        # Every remaining row still points at a stored binary.
        assert all(row.file_path in storage.objects for row in rows)
        assert await session.get(Project, project.id) is not None

        storage.remove = real_remove
        await project_service.delete_project(session, student, project.id, storage)
        assert await session.get(Project, project.id) is None
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_list_scope(self, session, student, other_student, faculty):
        mine = await _create(session, student, "Mine")
        await _create(session, other_student, "Theirs")

        student_view = await project_service.list_projects(session, student)
        assert [p.id for p in student_view] == [mine.id]

        faculty_view = await project_service.list_projects(session, faculty)
        assert len(faculty_view) == 2

        assigned_view = await project_service.list_projects(session, faculty, assigned=True)
        assert assigned_view == []

    @pytest.mark.asyncio
    async def test_other_student_cannot_view(self, session, student, other_student):
        project = await _create(session, student)
        with pytest.raises(PermissionDenied):
            await project_service.get_project(session, other_student, project.id)

    @pytest.mark.asyncio
    async def test_enrich_includes_student_name(self, session, student):
        project = await _create(session, student)
        read = await project_service.enrich_project(session, project)
        assert read.student_name == "Ada Student"
        assert read.milestone_count == 0
        assert read.milestone_progress == 0


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_student_and_faculty_counts(self, session, student, other_student, faculty):
        project = await _create(session, student)
        await _create(session, other_student, "Other")
        await project_service.submit_for_review(session, student, project.id)

        await task_service.create_task(
            session, student, project.id, TaskCreate(title="Wire panel", priority=TaskPriority.HIGH)
        )
        await task_service.create_task(session, student, project.id, TaskCreate(title="Write report"))

        stats = await project_service.student_analytics(session, student)
        assert stats.total_projects == 1
        assert stats.in_review_projects == 1
        assert stats.total_tasks == 2
        assert stats.pending_tasks == 2
        assert stats.high_priority_tasks == 1

        overall = await project_service.faculty_analytics(session, faculty)
        assert overall.total_projects == 2
        assert overall.pending_projects == 1

    @pytest.mark.asyncio
    async def test_student_without_projects(self, session, student):
        stats = await project_service.student_analytics(session, student)
        assert stats.total_projects == 0
        assert stats.total_documents == 0

    @pytest.mark.asyncio
    async def test_faculty_analytics_requires_reviewer(self, session, student):
        with pytest.raises(PermissionDenied):
            await project_service.faculty_analytics(session, student)
