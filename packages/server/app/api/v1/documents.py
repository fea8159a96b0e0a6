"""
Document endpoints: multipart upload, faculty review, delete, listings.

POST   /projects/{project_id}/documents   upload (multipart, field "file")
GET    /projects/{project_id}/documents   documents of one project
GET    /documents/review                  everything awaiting or past review (faculty)
POST   /documents/{document_id}/review    approve or reject
DELETE /documents/{document_id}           binary first, then the row
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Actor, get_current_actor
from app.core.database import get_session
from app.core.storage import ObjectStorage, get_storage
from app.services import documents as document_service
from projtrack_shared.schemas.common import DocumentStatus
from projtrack_shared.schemas.documents import DocumentRead, DocumentReview

router = APIRouter()


@router.get("/projects/{project_id}/documents", response_model=List[DocumentRead])
async def list_documents(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    documents = await document_service.list_documents(session, actor, project_id)
    return document_service.to_reads(documents, storage)


@router.post(
    "/projects/{project_id}/documents",
    response_model=DocumentRead,
    status_code=201,
)
async def upload_document(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    data = await file.read()
    document = await document_service.upload_document(
        session,
        actor,
        storage,
        project_id,
        file_name=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return document_service.to_read(document, storage)


@router.get("/documents/review", response_model=List[DocumentRead])
async def list_documents_for_review(
    status: Optional[DocumentStatus] = None,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    return await document_service.list_for_review(session, actor, storage, status=status)


@router.post("/documents/{document_id}/review", response_model=DocumentRead)
async def review_document(
    document_id: uuid.UUID,
    body: DocumentReview,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    document = await document_service.review_document(session, actor, document_id, body)
    return document_service.to_read(document, storage)


@router.delete("/documents/{document_id}")
async def delete_document(
    document_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    await document_service.delete_document(session, actor, storage, document_id)
    return {"ok": True}
