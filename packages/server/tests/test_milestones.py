"""
Tests for milestone state, progress and the completion workflow.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import uuid

import pytest
from sqlmodel import select

from app.core.errors import InvalidTransition, PermissionDenied, PersistenceFailure
from app.models.document import Document
from app.models.milestone import Milestone
from app.models.notification import Notification
from app.models.workflow_intent import WorkflowIntent
from app.services import milestones as milestone_service
from app.services import projects as project_service
from projtrack_shared.schemas.common import IntentStatus, MilestoneState
from projtrack_shared.schemas.milestones import (
    MilestoneCreate,
    MilestoneUpdate,
    is_overdue,
    milestone_state,
    progress_percent,
)
from projtrack_shared.schemas.projects import ProjectCreate

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _m(due_days: int = 1, completed: bool = False, document: bool = False):
    return SimpleNamespace(
        due_date=NOW + timedelta(days=due_days),
        completed_at=NOW if completed else None,
        document_id=uuid.uuid4() if document else None,
    )


# ---------------------------------------------------------------------------
# Unit tests: derived state
# ---------------------------------------------------------------------------


class TestDerivedState:
    def test_states(self):
        assert milestone_state(_m()) == MilestoneState.NOT_STARTED
        assert milestone_state(_m(document=True)) == MilestoneState.PENDING_APPROVAL
        assert milestone_state(_m(document=True, completed=True)) == MilestoneState.COMPLETED

    def test_progress_empty_is_zero(self):
        assert progress_percent([]) == 0

    def test_progress_quarter(self):
        ms = [_m(completed=True), _m(), _m(), _m()]
        assert progress_percent(ms) == 25

    def test_progress_rounds_half_up(self):
        ms = [_m(completed=True)] + [_m() for _ in range(7)]
        assert progress_percent(ms) == 13  # 12.5
        assert progress_percent([_m(completed=True), _m(), _m()]) == 33
        assert progress_percent([_m(completed=True), _m(completed=True), _m()]) == 67

    def test_overdue_only_when_incomplete_and_past(self):
        past = _m(due_days=-1)
        assert is_overdue(past, NOW)
        past.completed_at = NOW
        assert not is_overdue(past, NOW)
        assert not is_overdue(_m(due_days=1), NOW)

    def test_overdue_accepts_naive_datetimes(self):
        m = SimpleNamespace(
            due_date=datetime(2026, 2, 1), completed_at=None, document_id=None
        )
        assert is_overdue(m, NOW)


# ---------------------------------------------------------------------------
# Service tests
# ---------------------------------------------------------------------------


@pytest.fixture
async def project(session, student):
    return await project_service.create_project(
        session, student, ProjectCreate(title="Weather Station")
    )


async def _milestone(session, faculty, project, title="Design review", due_days=7):
    return await milestone_service.create_milestone(
        session,
        faculty,
        project.id,
        MilestoneCreate(title=title, due_date=datetime.now(timezone.utc) + timedelta(days=due_days)),
    )


async def _attach(session, student, storage, milestone):
    return await milestone_service.attach_document(
        session,
        student,
        storage,
        milestone.id,
        file_name="design.pdf",
        content_type="application/pdf",
        data=b"%PDF-1.7 design",
    )


class TestMilestoneWorkflow:
    @pytest.mark.asyncio
    async def test_attach_approve_revoke(self, session, student, faculty, storage, project):
        milestone = await _milestone(session, faculty, project)
        assert milestone_state(milestone) == MilestoneState.NOT_STARTED

        milestone = await _attach(session, student, storage, milestone)
        assert milestone_state(milestone) == MilestoneState.PENDING_APPROVAL
        document_id = milestone.document_id

        milestone = await milestone_service.approve_milestone(session, faculty, milestone.id)
        assert milestone_state(milestone) == MilestoneState.COMPLETED
        assert milestone_service.to_read(milestone).overdue is False

        milestone = await milestone_service.revoke_approval(session, faculty, milestone.id)
        assert milestone.completed_at is None
        assert milestone.document_id == document_id

        result = await session.execute(
            select(Notification).where(Notification.user_id == student.id)
        )
        types = [n.type for n in result.scalars().all()]
        assert types == ["milestone_update", "milestone_update"]

    @pytest.mark.asyncio
    async def test_approve_without_document_refused(self, session, faculty, project):
        milestone = await _milestone(session, faculty, project)
        with pytest.raises(InvalidTransition):
            await milestone_service.approve_milestone(session, faculty, milestone.id)
        refreshed = await session.get(Milestone, milestone.id)
        assert refreshed.completed_at is None

    @pytest.mark.asyncio
    async def test_approve_twice_refused(self, session, student, faculty, storage, project):
        milestone = await _attach(session, student, storage, await _milestone(session, faculty, project))
        await milestone_service.approve_milestone(session, faculty, milestone.id)
        with pytest.raises(InvalidTransition):
            await milestone_service.approve_milestone(session, faculty, milestone.id)

    @pytest.mark.asyncio
    async def test_revoke_incomplete_refused(self, session, faculty, project):
        milestone = await _milestone(session, faculty, project)
        with pytest.raises(InvalidTransition):
            await milestone_service.revoke_approval(session, faculty, milestone.id)

    @pytest.mark.asyncio
    async def test_student_cannot_approve(self, session, student, faculty, storage, project):
        milestone = await _attach(session, student, storage, await _milestone(session, faculty, project))
        with pytest.raises(PermissionDenied):
            await milestone_service.approve_milestone(session, student, milestone.id)

    @pytest.mark.asyncio
    async def test_students_cannot_create(self, session, student, project):
        with pytest.raises(PermissionDenied):
            await _milestone(session, student, project)

    @pytest.mark.asyncio
    async def test_progress_four_with_one_done(self, session, student, faculty, storage, project):
        milestones = [
            await _milestone(session, faculty, project, title=f"M{i}", due_days=i + 1)
            for i in range(4)
        ]
        await _attach(session, student, storage, milestones[0])
        await milestone_service.approve_milestone(session, faculty, milestones[0].id)

        progress = await milestone_service.milestone_progress(session, student, project.id)
        assert (progress.total, progress.completed, progress.percent) == (4, 1, 25)

        read = await project_service.enrich_project(session, project)
        assert read.milestone_progress == 25

    @pytest.mark.asyncio
    async def test_list_ordered_by_due_date(self, session, student, faculty, project):
        await _milestone(session, faculty, project, title="Late", due_days=30)
        await _milestone(session, faculty, project, title="Overdue", due_days=-2)
        await _milestone(session, faculty, project, title="Soon", due_days=3)

        milestones = await milestone_service.list_milestones(session, student, project.id)
        reads = milestone_service.to_reads(milestones)
        assert [m.title for m in reads] == ["Overdue", "Soon", "Late"]
        assert [m.overdue for m in reads] == [True, False, False]

    @pytest.mark.asyncio
    async def test_update_ignores_null_title(self, session, faculty, project):
        milestone = await _milestone(session, faculty, project)
        updated = await milestone_service.update_milestone(
            session, faculty, milestone.id, MilestoneUpdate(title=None, description="Bring slides")
        )
        assert updated.title == "Design review"
        assert updated.description == "Bring slides"

    @pytest.mark.asyncio
    async def test_link_failure_is_typed_and_left_for_sweep(
        self, session, student, faculty, storage, project, refuse_flush
    ):
        milestone = await _milestone(session, faculty, project)
        refuse_flush(Milestone)

        with pytest.raises(PersistenceFailure) as exc_info:
            await _attach(session, student, storage, milestone)

        assert exc_info.value.detail["code"] == "PERSISTENCE_FAILURE"
        await session.refresh(milestone)
        assert milestone.document_id is None
        document = (await session.execute(select(Document))).scalars().one()
        intent = (await session.execute(select(WorkflowIntent))).scalars().one()
        assert intent.status == IntentStatus.PENDING.value
        assert intent.payload["file_path"] == document.file_path
        assert "disk I/O error" in intent.error
