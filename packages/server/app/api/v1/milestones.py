"""
Milestone endpoints.

State is derived: not_started → pending_approval (document attached) →
completed (faculty approval, revocable).
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.core.storage import ObjectStorage, get_storage
from app.services import milestones as milestone_service
from projtrack_shared.schemas.milestones import (
    MilestoneCreate,
    MilestoneProgress,
    MilestoneRead,
    MilestoneUpdate,
)

router = APIRouter()


@router.get("/projects/{project_id}/milestones", response_model=List[MilestoneRead])
async def list_milestones(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Milestones ordered by due date, with derived state and overdue flag."""
    milestones = await milestone_service.list_milestones(session, actor, project_id)
    return milestone_service.to_reads(milestones)


@router.get("/projects/{project_id}/milestones/progress", response_model=MilestoneProgress)
async def get_progress(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await milestone_service.milestone_progress(session, actor, project_id)


@router.post(
    "/projects/{project_id}/milestones",
    response_model=MilestoneRead,
    status_code=201,
)
async def create_milestone(
    project_id: uuid.UUID,
    milestone_in: MilestoneCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    milestone = await milestone_service.create_milestone(session, actor, project_id, milestone_in)
    return milestone_service.to_read(milestone)


@router.patch("/milestones/{milestone_id}", response_model=MilestoneRead)
async def update_milestone(
    milestone_id: uuid.UUID,
    milestone_in: MilestoneUpdate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    milestone = await milestone_service.update_milestone(session, actor, milestone_id, milestone_in)
    return milestone_service.to_read(milestone)


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    await milestone_service.delete_milestone(session, actor, milestone_id)
    return {"ok": True}


@router.post("/milestones/{milestone_id}/document", response_model=MilestoneRead)
async def attach_document(
    milestone_id: uuid.UUID,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Upload a document and link it to the milestone."""
    data = await file.read()
    milestone = await milestone_service.attach_document(
        session,
        actor,
        storage,
        milestone_id,
        file_name=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return milestone_service.to_read(milestone)


@router.post("/milestones/{milestone_id}/approve", response_model=MilestoneRead)
async def approve_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    milestone = await milestone_service.approve_milestone(session, actor, milestone_id)
    return milestone_service.to_read(milestone)


@router.post("/milestones/{milestone_id}/revoke", response_model=MilestoneRead)
async def revoke_milestone(
    milestone_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    milestone = await milestone_service.revoke_approval(session, actor, milestone_id)
    return milestone_service.to_read(milestone)
