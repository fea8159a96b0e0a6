"""
Workflow intents for writes that span the database and object storage.

An intent row is committed before the first side effect and closed after the
last one. Anything still pending after ``intent_stale_minutes`` is picked up by
``reconcile_intents``, which either finishes the work or undoes it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.storage import ObjectStorage, StorageError
from app.models.document import Document
from app.models.milestone import Milestone
from app.models.workflow_intent import WorkflowIntent
from projtrack_shared.schemas.common import IntentKind, IntentStatus

log = structlog.get_logger()


async def begin_intent(
    session: AsyncSession,
    kind: IntentKind,
    actor_id: uuid.UUID,
    payload: dict[str, Any],
) -> WorkflowIntent:
    intent = WorkflowIntent(
        kind=kind.value,
        status=IntentStatus.PENDING.value,
        actor_id=actor_id,
        payload=payload,
    )
    session.add(intent)
    await session.commit()
    await session.refresh(intent)
    log.info("intent.begun", intent_id=str(intent.id), kind=intent.kind)
    return intent


async def _close_intent(
    session: AsyncSession,
    intent: WorkflowIntent,
    status: IntentStatus,
    error: Optional[str] = None,
) -> WorkflowIntent:
    intent.status = status.value
    if error is not None:
        intent.error = error
    session.add(intent)
    await session.commit()
    await session.refresh(intent)
    log.info("intent.closed", intent_id=str(intent.id), kind=intent.kind, status=intent.status)
    return intent


async def complete_intent(session: AsyncSession, intent: WorkflowIntent) -> WorkflowIntent:
    return await _close_intent(session, intent, IntentStatus.COMPLETED)


async def compensate_intent(
    session: AsyncSession, intent: WorkflowIntent, error: Optional[str] = None
) -> WorkflowIntent:
    return await _close_intent(session, intent, IntentStatus.COMPENSATED, error)


async def record_intent_error(
    session: AsyncSession, intent: WorkflowIntent, error: str
) -> None:
    """Leave the intent pending for the sweep, noting what went wrong."""
    intent.error = error
    session.add(intent)
    await session.commit()
    log.warning("intent.left_pending", intent_id=str(intent.id), kind=intent.kind, error=error)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


async def _document_by_path(session: AsyncSession, file_path: str) -> Optional[Document]:
    result = await session.execute(select(Document).where(Document.file_path == file_path))
    return result.scalars().first()


async def _reconcile_upload(
    session: AsyncSession, storage: ObjectStorage, intent: WorkflowIntent
) -> None:
    file_path = intent.payload.get("file_path", "")
    if await _document_by_path(session, file_path) is not None:
        await complete_intent(session, intent)
        return
    await storage.remove(file_path)
    await compensate_intent(session, intent, "document row never written")


async def _reconcile_attach(
    session: AsyncSession, storage: ObjectStorage, intent: WorkflowIntent
) -> None:
    file_path = intent.payload.get("file_path", "")
    document = await _document_by_path(session, file_path)
    if document is None:
        await storage.remove(file_path)
        await compensate_intent(session, intent, "document never written")
        return

    milestone = await session.get(Milestone, uuid.UUID(intent.payload["milestone_id"]))
    if milestone is None:
        await compensate_intent(session, intent, "milestone no longer exists")
        return

    if milestone.document_id != document.id:
        milestone.document_id = document.id
        session.add(milestone)
    await complete_intent(session, intent)


async def _reconcile_delete(
    session: AsyncSession, storage: ObjectStorage, intent: WorkflowIntent
) -> None:
    document = await session.get(Document, uuid.UUID(intent.payload["document_id"]))
    if document is not None:
        await storage.remove(document.file_path)
        await unlink_milestones(session, document.id)
        await session.delete(document)
    await complete_intent(session, intent)


async def remove_document(
    session: AsyncSession,
    storage: ObjectStorage,
    actor_id: uuid.UUID,
    document: Document,
) -> None:
    """Remove one document's binary, then its row, under a delete intent.

    If storage refuses, the intent is compensated, the row is kept and the
    StorageError propagates.
    """
    intent = await begin_intent(
        session,
        IntentKind.DOCUMENT_DELETE,
        actor_id,
        {"document_id": str(document.id), "file_path": document.file_path},
    )
    try:
        await storage.remove(document.file_path)
    except StorageError as exc:
        await compensate_intent(session, intent, str(exc))
        raise

    await unlink_milestones(session, document.id)
    await session.delete(document)
    await session.commit()
    await complete_intent(session, intent)


async def unlink_milestones(session: AsyncSession, document_id: uuid.UUID) -> None:
    result = await session.execute(
        select(Milestone).where(Milestone.document_id == document_id)
    )
    for milestone in result.scalars().all():
        milestone.document_id = None
        milestone.completed_at = None
        session.add(milestone)


_RECONCILERS = {
    IntentKind.DOCUMENT_UPLOAD.value: _reconcile_upload,
    IntentKind.MILESTONE_ATTACH.value: _reconcile_attach,
    IntentKind.DOCUMENT_DELETE.value: _reconcile_delete,
}


async def reconcile_intents(
    session: AsyncSession,
    storage: ObjectStorage,
    older_than: timedelta = timedelta(minutes=15),
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """Finish or undo every pending intent older than ``older_than``.

    Returns counts of intents examined, completed, compensated and still
    pending (storage errors leave an intent for the next sweep).
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - older_than

    result = await session.execute(
        select(WorkflowIntent)
        .where(
            WorkflowIntent.status == IntentStatus.PENDING.value,
            WorkflowIntent.created_at < cutoff,
        )
        .order_by(WorkflowIntent.created_at)
    )
    intents = list(result.scalars().all())

    stats = {"examined": len(intents), "completed": 0, "compensated": 0, "pending": 0}
    for intent in intents:
        # A rollback on an earlier intent expires everything loaded here.
        await session.refresh(intent)
        reconciler = _RECONCILERS.get(intent.kind)
        if reconciler is None:
            log.warning("intent.unknown_kind", intent_id=str(intent.id), kind=intent.kind)
            stats["pending"] += 1
            continue
        try:
            await reconciler(session, storage, intent)
        except StorageError as exc:
            await session.rollback()
            await session.refresh(intent)
            await record_intent_error(session, intent, str(exc))
            stats["pending"] += 1
            continue
        stats[intent.status] += 1

    log.info("intent.reconciled", **stats)
    return stats
