"""
Notification service: best-effort dispatch plus the recipient's inbox queries.

``notify`` always runs after the primary mutation has been committed. A failed
insert is logged and rolled back; it never undoes the mutation that caused it.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor
from app.core.errors import NotFound, PermissionDenied
from app.core.events import publish_notification
from app.models.notification import Notification
from projtrack_shared.schemas.common import NotificationType

log = structlog.get_logger()


async def notify(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    title: str,
    message: str,
    type: NotificationType | str,
    related_id: Optional[uuid.UUID] = None,
) -> Optional[Notification]:
    """Insert one notification and push it to the recipient.

    Returns the stored row, or None when the insert failed.
    """
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type.value if isinstance(type, NotificationType) else type,
        related_id=related_id,
    )
    try:
        # Savepoint so a failed insert leaves the caller's loaded rows intact.
        async with session.begin_nested():
            session.add(notification)
        await session.commit()
    except SQLAlchemyError as exc:
        log.warning(
            "notification.insert_failed",
            user_id=str(user_id),
            type=notification.type,
            error=str(exc),
        )
        return None

    log.info(
        "notification.sent",
        notification_id=str(notification.id),
        user_id=str(user_id),
        type=notification.type,
    )
    await publish_notification(notification)
    return notification


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


async def list_notifications(
    session: AsyncSession,
    actor: Actor,
    *,
    since: Optional[datetime] = None,
    unread_only: bool = False,
    limit: int = 50,
    oldest_first: bool = False,
) -> list[Notification]:
    """The actor's notifications, newest first.

    With ``oldest_first`` the page starts right after ``since`` instead, so a
    client can walk forward through a backlog larger than one page.
    """
    stmt = select(Notification).where(Notification.user_id == actor.id)
    if since is not None:
        stmt = stmt.where(Notification.created_at > since)
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    if oldest_first:
        stmt = stmt.order_by(Notification.created_at, Notification.id)
    else:
        stmt = stmt.order_by(Notification.created_at.desc())
    stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_read(
    session: AsyncSession, actor: Actor, notification_id: uuid.UUID
) -> Notification:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.user_id != actor.id:
        raise PermissionDenied("You can only mark your own notifications as read")

    if not notification.is_read:
        notification.is_read = True
        session.add(notification)
        await session.commit()
        await session.refresh(notification)
    return notification


async def mark_all_read(session: AsyncSession, actor: Actor) -> int:
    """Mark every unread notification of the actor as read. Returns the count."""
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == actor.id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    await session.commit()
    return result.rowcount or 0


async def unread_count(session: AsyncSession, actor: Actor) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == actor.id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one()
