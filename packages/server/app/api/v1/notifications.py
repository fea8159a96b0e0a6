"""
Notification endpoints.

- GET  /notifications            newest first (since, unread_only, oldest_first)
- GET  /notifications/unread-count
- POST /notifications/{id}/read
- POST /notifications/read-all
- GET  /notifications/stream     SSE push feed with Last-Event-ID replay
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.core.events import notification_stream
from app.services import notifications as notification_service
from projtrack_shared.schemas.notifications import NotificationRead, UnreadCount

router = APIRouter()


@router.get("", response_model=List[NotificationRead])
async def list_notifications(
    since: Optional[datetime] = None,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    oldest_first: bool = False,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await notification_service.list_notifications(
        session,
        actor,
        since=since,
        unread_only=unread_only,
        limit=limit,
        oldest_first=oldest_first,
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return UnreadCount(unread=await notification_service.unread_count(session, actor))


@router.post("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    updated = await notification_service.mark_all_read(session, actor)
    return {"ok": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    return await notification_service.mark_read(session, actor, notification_id)


@router.get("/stream")
async def stream_notifications(
    request: Request,
    last_event_id: Optional[str] = Header(None, alias="Last-Event-ID"),
    actor: Actor = Depends(get_current_actor),
):
    """
    Stream the caller's notifications via SSE.

    Each event's id is the notification id; reconnecting with it in
    Last-Event-ID replays anything missed. An unknown cursor yields a
    `notifications.reset` event so the client refetches its list.

    Emits `: heartbeat` comments to keep the connection alive.
    """
    return EventSourceResponse(
        notification_stream(request, actor.id, last_event_id=last_event_id)
    )
