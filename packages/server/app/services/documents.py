"""
Document service layer: upload, faculty review, deletion and listings.

Uploads store the binary before the row and deletes remove the binary before
the row. Both run under a workflow intent so a crash between the two steps is
finished or undone by the reconciliation sweep.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, ensure_role
from app.core.config import get_settings
from app.core.errors import (
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    StorageFailure,
    ValidationFailed,
)
from app.core.storage import ObjectStorage, StorageError, build_object_path
from app.models.document import Document
from app.models.profile import Profile
from app.models.project import Project
from app.models.workflow_intent import WorkflowIntent
from app.services import intents
from app.services.notifications import notify
from app.services.projects import ensure_can_view, ensure_participant, get_project_or_404
from projtrack_shared.schemas.common import (
    REVIEWER_ROLES,
    DocumentStatus,
    IntentKind,
    NotificationType,
    Role,
)
from projtrack_shared.schemas.documents import DocumentRead, DocumentReview, validate_review

log = structlog.get_logger()
settings = get_settings()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_document_or_404(session: AsyncSession, document_id: uuid.UUID) -> Document:
    document = await session.get(Document, document_id)
    if document is None:
        raise NotFound("Document not found")
    return document


def to_read(
    document: Document,
    storage: ObjectStorage,
    project_title: Optional[str] = None,
    student_name: Optional[str] = None,
) -> DocumentRead:
    return DocumentRead(
        id=document.id,
        project_id=document.project_id,
        name=document.name,
        file_path=document.file_path,
        file_type=document.file_type,
        file_size=document.file_size,
        uploaded_by=document.uploaded_by,
        status=document.status,
        faculty_remarks=document.faculty_remarks,
        url=document_url(storage, document),
        project_title=project_title,
        student_name=student_name,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def document_url(storage: ObjectStorage, document: Document) -> str:
    """Public, non-expiring link to the stored binary."""
    return storage.public_url(document.file_path)


def _check_upload(file_name: str, data: bytes) -> None:
    if not file_name or not file_name.strip():
        raise ValidationFailed("A file name is required")
    if not data:
        raise ValidationFailed("The uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise ValidationFailed(
            f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB upload limit"
        )


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


async def store_document(
    session: AsyncSession,
    actor: Actor,
    storage: ObjectStorage,
    project: Project,
    *,
    file_name: str,
    content_type: str,
    data: bytes,
    kind: IntentKind = IntentKind.DOCUMENT_UPLOAD,
    extra: Optional[dict[str, Any]] = None,
) -> tuple[Document, WorkflowIntent]:
    """Store the binary, then insert the row. The intent is left open.

    If the insert fails the stored binary is removed once; if that removal
    also fails the intent stays pending for the sweep.
    """
    _check_upload(file_name, data)

    file_path = build_object_path(actor.id, project.id, file_name)
    intent = await intents.begin_intent(
        session,
        kind,
        actor.id,
        {"file_path": file_path, "project_id": str(project.id), "name": file_name, **(extra or {})},
    )

    try:
        await storage.put(file_path, data, content_type)
    except StorageError as exc:
        await intents.compensate_intent(session, intent, str(exc))
        log.error("document.store_failed", project_id=str(project.id), error=str(exc))
        raise StorageFailure(f"Could not store '{file_name}'")

    document = Document(
        project_id=project.id,
        name=file_name,
        file_path=file_path,
        file_type=content_type or "application/octet-stream",
        file_size=len(data),
        uploaded_by=actor.id,
        status=DocumentStatus.PENDING.value,
    )
    try:
        session.add(document)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        await session.refresh(intent)
        log.error("document.insert_failed", file_path=file_path, error=str(exc))
        try:
            await storage.remove(file_path)
        except StorageError as cleanup_exc:
            await intents.record_intent_error(session, intent, str(cleanup_exc))
        else:
            await intents.compensate_intent(session, intent, str(exc))
        raise PersistenceFailure(f"Could not record '{file_name}': {exc}") from exc

    await session.refresh(document)
    log.info(
        "document.uploaded",
        document_id=str(document.id),
        project_id=str(project.id),
        file_size=document.file_size,
    )
    return document, intent


async def upload_document(
    session: AsyncSession,
    actor: Optional[Actor],
    storage: ObjectStorage,
    project_id: uuid.UUID,
    *,
    file_name: str,
    content_type: str,
    data: bytes,
) -> Document:
    actor = ensure_role(actor, {Role.STUDENT}, "upload documents")
    project = await get_project_or_404(session, project_id)
    await ensure_participant(session, actor, project, "upload documents")

    document, intent = await store_document(
        session,
        actor,
        storage,
        project,
        file_name=file_name,
        content_type=content_type,
        data=data,
    )
    await intents.complete_intent(session, intent)
    return document


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


async def review_document(
    session: AsyncSession,
    actor: Optional[Actor],
    document_id: uuid.UUID,
    review: DocumentReview,
) -> Document:
    """Approve or reject a document and tell the project's student.

    Repeating the same decision is accepted; it rewrites the remarks and sends
    another notification.
    """
    actor = ensure_role(actor, REVIEWER_ROLES, "review documents")
    document = await get_document_or_404(session, document_id)

    is_valid, error_msg = validate_review(DocumentStatus(document.status), review.status)
    if not is_valid:
        raise InvalidTransition(error_msg)

    document.status = review.status.value
    document.faculty_remarks = review.remarks
    session.add(document)
    await session.commit()
    await session.refresh(document)

    log.info(
        "document.reviewed",
        document_id=str(document.id),
        status=document.status,
        reviewer_id=str(actor.id),
    )

    project = await session.get(Project, document.project_id)
    if project is not None:
        await notify(
            session,
            user_id=project.student_id,
            title=f"Document {document.status}",
            message=f'Your document "{document.name}" has been {document.status} by faculty.',
            type=NotificationType.DOCUMENT_FEEDBACK,
            related_id=project.id,
        )
    return document


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def delete_document(
    session: AsyncSession,
    actor: Optional[Actor],
    storage: ObjectStorage,
    document_id: uuid.UUID,
) -> None:
    """Remove the binary, then the row. A storage failure keeps the row."""
    actor = ensure_role(actor, {Role.STUDENT, Role.ADMIN}, "delete documents")
    document = await get_document_or_404(session, document_id)
    if actor.is_student:
        project = await get_project_or_404(session, document.project_id)
        await ensure_participant(session, actor, project, "delete its documents")

    try:
        await intents.remove_document(session, storage, actor.id, document)
    except StorageError as exc:
        log.error("document.remove_failed", document_id=str(document.id), error=str(exc))
        raise StorageFailure(f"Could not remove stored file for '{document.name}'")
    log.info("document.deleted", document_id=str(document_id))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_documents(
    session: AsyncSession,
    actor: Optional[Actor],
    project_id: uuid.UUID,
) -> list[Document]:
    actor = ensure_role(actor, Role, "view documents")
    project = await get_project_or_404(session, project_id)
    await ensure_can_view(session, actor, project)

    result = await session.execute(
        select(Document)
        .where(Document.project_id == project_id)
        .order_by(Document.created_at.desc())
    )
    return list(result.scalars().all())


async def list_for_review(
    session: AsyncSession,
    actor: Optional[Actor],
    storage: ObjectStorage,
    *,
    status: Optional[DocumentStatus] = None,
) -> list[DocumentRead]:
    """Every document with its project title and student name embedded."""
    ensure_role(actor, REVIEWER_ROLES, "review documents")

    stmt = (
        select(Document, Project.title, Profile.name)
        .join(Project, Project.id == Document.project_id)
        .join(Profile, Profile.id == Project.student_id)
    )
    if status is not None:
        stmt = stmt.where(Document.status == status.value)
    stmt = stmt.order_by(Document.created_at.desc())

    result = await session.execute(stmt)
    return [
        to_read(document, storage, project_title=title, student_name=name)
        for document, title, name in result.all()
    ]


def to_reads(documents: Sequence[Document], storage: ObjectStorage) -> list[DocumentRead]:
    return [to_read(d, storage) for d in documents]
