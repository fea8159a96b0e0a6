"""
Faculty feedback and review assignment endpoints.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.services import assignments as assignment_service
from app.services import feedback as feedback_service
from projtrack_shared.schemas.reviews import (
    AssignmentCreate,
    AssignmentRead,
    AssignmentResponse,
    FeedbackCreate,
    FeedbackRead,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/feedback", response_model=List[FeedbackRead])
async def list_feedback(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await feedback_service.list_feedback(session, actor, project_id)


@router.post("/projects/{project_id}/feedback", response_model=FeedbackRead, status_code=201)
async def provide_feedback(
    project_id: uuid.UUID,
    body: FeedbackCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    fb = await feedback_service.provide_feedback(session, actor, project_id, body)
    return FeedbackRead(
        id=fb.id,
        project_id=fb.project_id,
        faculty_id=fb.faculty_id,
        task_id=fb.task_id,
        comment=fb.comment,
        faculty_name=actor.name,
        created_at=fb.created_at,
    )


# ---------------------------------------------------------------------------
# Review assignments
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/assignments", response_model=List[AssignmentRead])
async def list_assignments(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await assignment_service.list_assignments(session, actor, project_id)


@router.post(
    "/projects/{project_id}/assignments",
    response_model=AssignmentRead,
    status_code=201,
)
async def assign_reviewer(
    project_id: uuid.UUID,
    body: AssignmentCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await assignment_service.assign_reviewer(session, actor, project_id, body.faculty_email)


@router.post("/assignments/{assignment_id}/respond", response_model=AssignmentRead)
async def respond_to_assignment(
    assignment_id: uuid.UUID,
    body: AssignmentResponse,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await assignment_service.respond_to_assignment(
        session, actor, assignment_id, body.accept
    )


@router.delete("/assignments/{assignment_id}")
async def remove_assignment(
    assignment_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    await assignment_service.remove_assignment(session, actor, assignment_id)
    return {"ok": True}
