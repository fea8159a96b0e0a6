"""
API v1 Router

Project-scoped collections live under /projects/{project_id}/...; single
resources are addressed directly (/documents/{id}, /milestones/{id}, ...).
"""

from fastapi import APIRouter
from . import documents, milestones, notifications, profiles, projects, reviews, tasks, teams

router = APIRouter()

router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, tags=["Tasks"])
router.include_router(documents.router, tags=["Documents"])
router.include_router(milestones.router, tags=["Milestones"])
router.include_router(reviews.router, tags=["Reviews"])
router.include_router(teams.router, tags=["Teams"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/profiles/me",
            "/projects",
            "/projects/{project_id}/tasks",
            "/projects/{project_id}/documents",
            "/projects/{project_id}/milestones",
            "/projects/{project_id}/feedback",
            "/projects/{project_id}/assignments",
            "/documents/review",
            "/teams/me",
            "/invites",
            "/notifications",
            "/notifications/stream",
        ],
    }
