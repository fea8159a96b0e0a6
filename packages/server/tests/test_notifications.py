"""
Tests for the notification inbox and push feed.

Tests cover:
- Best-effort dispatch (a failed insert returns None and raises nothing)
- Mark read / mark all / unread count
- Cursor replay and reset for the SSE feed
- Redis publish failures are swallowed
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from app.core import events
from app.core.errors import NotFound, PermissionDenied
from app.models.notification import Notification
from app.services import notifications as notification_service
from projtrack_shared.schemas.common import NotificationType


async def _notify(session, user_id, title="Hello"):
    return await notification_service.notify(
        session,
        user_id=user_id,
        title=title,
        message=f"{title} message",
        type=NotificationType.FEEDBACK,
    )


class TestDispatch:
    @pytest.mark.asyncio
    async def test_notify_stores_and_publishes(self, session, student, published):
        note = await _notify(session, student.id)
        assert note is not None
        assert note.type == "feedback"
        published.assert_awaited_once_with(note)

    @pytest.mark.asyncio
    async def test_insert_failure_is_swallowed(self, session, student, published):
        with patch.object(
            session, "commit", AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("locked")))
        ):
            assert await _notify(session, student.id) is None
        published.assert_not_awaited()


class TestInbox:
    @pytest.mark.asyncio
    async def test_unread_count_and_mark_read(self, session, student):
        first = await _notify(session, student.id, "One")
        await _notify(session, student.id, "Two")
        assert await notification_service.unread_count(session, student) == 2

        read = await notification_service.mark_read(session, student, first.id)
        assert read.is_read
        assert await notification_service.unread_count(session, student) == 1

        unread = await notification_service.list_notifications(session, student, unread_only=True)
        assert [n.title for n in unread] == ["Two"]

    @pytest.mark.asyncio
    async def test_mark_all_read(self, session, student, other_student):
        await _notify(session, student.id)
        await _notify(session, student.id)
        await _notify(session, other_student.id)

        assert await notification_service.mark_all_read(session, student) == 2
        assert await notification_service.unread_count(session, student) == 0
        assert await notification_service.unread_count(session, other_student) == 1

    @pytest.mark.asyncio
    async def test_cannot_mark_someone_elses(self, session, student, other_student):
        note = await _notify(session, student.id)
        with pytest.raises(PermissionDenied):
            await notification_service.mark_read(session, other_student, note.id)

    @pytest.mark.asyncio
    async def test_mark_missing(self, session, student):
        with pytest.raises(NotFound):
            await notification_service.mark_read(session, student, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_newest_first(self, session, student, other_student):
        base = datetime(2026, 1, 10, tzinfo=timezone.utc)
        for i, title in enumerate(["old", "mid", "new"]):
            session.add(Notification(
                user_id=student.id, title=title, message=title, type="feedback",
                created_at=base + timedelta(minutes=i),
            ))
        session.add(Notification(user_id=other_student.id, title="theirs", message="x", type="feedback"))
        await session.commit()

        rows = await notification_service.list_notifications(session, student)
        assert [n.title for n in rows] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_oldest_first_pages_forward_from_cursor(self, session, student):
        base = datetime(2026, 1, 10, tzinfo=timezone.utc)
        for i in range(5):
            session.add(Notification(
                user_id=student.id, title=f"n{i}", message="m", type="feedback",
                created_at=base + timedelta(minutes=i),
            ))
        await session.commit()

        first = await notification_service.list_notifications(
            session, student, since=base, limit=2, oldest_first=True
        )
        assert [n.title for n in first] == ["n1", "n2"]
        rest = await notification_service.list_notifications(
            session, student, since=first[-1].created_at, limit=2, oldest_first=True
        )
        assert [n.title for n in rest] == ["n3", "n4"]


class TestReplay:
    @pytest.fixture
    async def history(self, session, student):
        base = datetime(2026, 1, 10, tzinfo=timezone.utc)
        notes = []
        for i in range(3):
            note = Notification(
                user_id=student.id,
                title=f"n{i}",
                message="m",
                type="team_update",
                created_at=base + timedelta(minutes=i),
            )
            session.add(note)
            notes.append(note)
        await session.commit()
        return notes

    @pytest.mark.asyncio
    async def test_replays_after_cursor(self, student, history, session_context):
        with patch.object(events, "get_session_context", session_context):
            replay, reset = await events._replay_since(student.id, str(history[0].id))
        assert not reset
        assert [r["title"] for r in replay] == ["n1", "n2"]

    @pytest.mark.asyncio
    async def test_unknown_cursor_resets(self, student, history, session_context):
        with patch.object(events, "get_session_context", session_context):
            replay, reset = await events._replay_since(student.id, str(uuid.uuid4()))
        assert reset
        assert replay == []

    @pytest.mark.asyncio
    async def test_malformed_cursor_resets(self, student):
        replay, reset = await events._replay_since(student.id, "not-a-uuid")
        assert reset

    @pytest.mark.asyncio
    async def test_other_users_cursor_resets(self, other_student, history, session_context):
        with patch.object(events, "get_session_context", session_context):
            _, reset = await events._replay_since(other_student.id, str(history[0].id))
        assert reset

    def test_sse_frame_uses_notification_id(self, student):
        note = Notification(
            id=uuid.uuid4(),
            user_id=student.id,
            title="t",
            message="m",
            type="feedback",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        frame = events._to_sse(events.serialize_notification(note))
        assert frame["event"] == "notification"
        assert frame["id"] == str(note.id)
        assert json.loads(frame["data"])["title"] == "t"


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_to_recipient_channel(self, student):
        redis = AsyncMock()
        note = Notification(
            id=uuid.uuid4(), user_id=student.id, title="t", message="m", type="feedback",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        with patch.object(events, "get_redis", AsyncMock(return_value=redis)):
            assert await events.publish_notification(note) is True
        channel, payload = redis.publish.await_args.args
        assert channel == f"pt:notifications:{student.id}"
        assert json.loads(payload)["id"] == str(note.id)

    @pytest.mark.asyncio
    async def test_redis_down_is_not_fatal(self, student):
        redis = AsyncMock()
        redis.publish.side_effect = RedisConnectionError("down")
        note = Notification(
            id=uuid.uuid4(), user_id=student.id, title="t", message="m", type="feedback",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        with patch.object(events, "get_redis", AsyncMock(return_value=redis)):
            assert await events.publish_notification(note) is False
