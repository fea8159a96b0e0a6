"""
Project endpoints: CRUD, review lifecycle, analytics.

Lifecycle: pending → in_review → approved, with in_review → changes_requested
→ in_review for rework.
- Students submit (POST /{project_id}/submit)
- Faculty decide (POST /{project_id}/decision)
- No notification is emitted for a status change
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.core.storage import ObjectStorage, get_storage
from app.services import projects as project_service
from projtrack_shared.schemas.common import ProjectStatus
from projtrack_shared.schemas.projects import (
    ProjectAnalytics,
    ProjectCreate,
    ProjectDecision,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


@router.get("", response_model=List[ProjectRead])
async def list_projects(
    status: Optional[ProjectStatus] = None,
    assigned: bool = False,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Students get their own and their team's projects; faculty get all of
    them, or only the ones assigned to them with ``assigned=true``."""
    projects = await project_service.list_projects(
        session, actor, status=status, assigned=assigned
    )
    return await project_service.enrich_projects(session, projects)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    project_in: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.create_project(session, actor, project_in)
    return await project_service.enrich_project(session, project)


@router.get("/analytics", response_model=ProjectAnalytics)
async def get_analytics(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Counts over the caller's projects (students) or all projects (faculty)."""
    if actor.is_student:
        return await project_service.student_analytics(session, actor)
    return await project_service.faculty_analytics(session, actor)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project(session, actor, project_id)
    return await project_service.enrich_project(session, project)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.update_project(session, actor, project_id, project_in)
    return await project_service.enrich_project(session, project)


@router.delete("/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Delete a pending project (owner only)."""
    await project_service.delete_project(session, actor, project_id, storage)
    return {"ok": True}


@router.post("/{project_id}/submit", response_model=ProjectRead)
async def submit_project(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Submit (or resubmit) a project for faculty review."""
    project = await project_service.submit_for_review(session, actor, project_id)
    return await project_service.enrich_project(session, project)


@router.post("/{project_id}/decision", response_model=ProjectRead)
async def decide_project(
    project_id: uuid.UUID,
    body: ProjectDecision,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    """Approve a project under review or send it back for changes."""
    project = await project_service.decide(session, actor, project_id, body.to_status)
    return await project_service.enrich_project(session, project)
