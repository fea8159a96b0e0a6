"""
Notification push feed: Redis Pub/Sub fan-out streamed as Server-Sent Events.

- One Pub/Sub channel per recipient
- Cursor replay from the database using Last-Event-ID (a notification id)
- notifications.reset when the cursor is unknown
- Keepalive heartbeat
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator, Optional
from uuid import UUID

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.redis import get_redis
from app.models.notification import Notification

log = structlog.get_logger()
settings = get_settings()

REDIS_CHANNEL_PREFIX = "pt:notifications:"
MAX_REPLAY_NOTIFICATIONS = 200


def channel_for(user_id: UUID) -> str:
    return f"{REDIS_CHANNEL_PREFIX}{user_id}"


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "is_read": notification.is_read,
        "related_id": str(notification.related_id) if notification.related_id else None,
        "created_at": notification.created_at.isoformat(),
    }


def _to_sse(data: dict[str, Any]) -> dict[str, str]:
    return {"event": "notification", "id": data["id"], "data": json.dumps(data)}


async def publish_notification(notification: Notification) -> bool:
    """Publish a committed notification to its recipient's channel.

    Best-effort: the row is already stored, so a Redis outage only delays
    delivery until the client polls or reconnects.
    """
    try:
        redis = await get_redis()
        await redis.publish(
            channel_for(notification.user_id),
            json.dumps(serialize_notification(notification)),
        )
    except (RedisError, OSError) as exc:
        log.warning(
            "notification.publish_failed",
            notification_id=str(notification.id),
            error=str(exc),
        )
        return False
    return True


async def _replay_since(
    user_id: UUID, last_event_id: str
) -> tuple[list[dict[str, Any]], bool]:
    """Load notifications newer than the cursor.

    Returns (notifications, should_reset). An unknown cursor means reset.
    """
    try:
        cursor_id = UUID(last_event_id)
    except ValueError:
        return [], True

    async with get_session_context() as session:
        cursor = await session.get(Notification, cursor_id)
        if cursor is None or cursor.user_id != user_id:
            return [], True

        result = await session.execute(
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.created_at > cursor.created_at,
            )
            .order_by(Notification.created_at)
            .limit(MAX_REPLAY_NOTIFICATIONS)
        )
        return [serialize_notification(n) for n in result.scalars().all()], False


async def notification_stream(
    request: Request,
    user_id: UUID,
    last_event_id: Optional[str] = None,
) -> AsyncGenerator[dict, None]:
    """SSE generator for one recipient: replay, then live delivery."""
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.subscribe(channel_for(user_id))
    heartbeat = settings.sse_heartbeat_seconds

    try:
        if last_event_id:
            replay, should_reset = await _replay_since(user_id, last_event_id)
            if should_reset:
                yield {
                    "event": "notifications.reset",
                    "data": json.dumps({
                        "reason": "cursor_unknown",
                        "message": "Cursor not found. Full refresh required.",
                    }),
                }
            for data in replay:
                yield _to_sse(data)

        loop = asyncio.get_running_loop()
        last_sent = loop.time()
        while True:
            if await request.is_disconnected():
                break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is not None and message["type"] == "message":
                yield _to_sse(json.loads(message["data"]))
                last_sent = loop.time()
            elif loop.time() - last_sent >= heartbeat:
                yield {"comment": "heartbeat"}
                last_sent = loop.time()

    except asyncio.CancelledError:
        log.info("notification_stream.cancelled", user_id=str(user_id))
    finally:
        await pubsub.unsubscribe(channel_for(user_id))
        await pubsub.aclose()
