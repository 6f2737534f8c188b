"""
Document routes
===============

Upload, list, download and delete organization documents.

Upload flow
-----------
1. Validate the multipart form (file ≤ MAX_UPLOAD_BYTES, organization id,
   org-wide flag or explicit groups).
2. Check the caller belongs to the organization.
3. Store the bytes under ``{organizationId}/{millis}-{random}-{filename}``.
4. Record the document and its group assignments (``pending`` embedding).
5. Ask AutoRAG to re-index; a failed sync is logged and the upload still
   succeeds.
"""

import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from nova.api.answer_provider import AnswerProviderError
from nova.api.auth import AuthenticatedUser, get_current_user, require_organization_access, require_organization_admin
from nova.api.models import (
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentOut,
    DocumentUploadResponse,
    EmbeddingStatusUpdate,
    SuccessResponse,
)
from nova.database.core.documents import (
    create_document,
    delete_document,
    get_document,
    list_organization_documents,
    record_index_reference,
    update_embedding_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def parse_group_ids(raw: Optional[str]) -> list[UUID]:
    """Group ids from the JSON-encoded ``groupIds`` form field; unparseable input yields no groups."""
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(values, list):
        return []
    try:
        return [UUID(str(value)) for value in values]
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid group ID")


def _parse_organization_id(value: Optional[str]) -> UUID:
    if not value:
        raise HTTPException(status_code=400, detail="organizationId is required")
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid organization ID")


@router.get("", response_model=DocumentListResponse)
async def documents(
    organizationId: Optional[str] = None,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Documents of an organization (``?organizationId=``), newest first."""
    organization_id = _parse_organization_id(organizationId)
    await require_organization_access(user, organization_id)
    return {"documents": await run_in_threadpool(list_organization_documents, organization_id=organization_id)}


@router.post("/upload", response_model=DocumentUploadResponse)
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    organizationId: Optional[str] = Form(None),
    isOrgWide: Optional[str] = Form(None),
    groupIds: Optional[str] = Form(None),
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Upload one document.

    Form fields:
        file: the document
        organizationId: owning organization
        isOrgWide: "true" to assign the document to every group of the organization
        groupIds: JSON array of group ids (ignored when isOrgWide)

    Response:
        200: {'success': True, 'document': {...}, 'syncJobId': str | None}
        400: missing file or organization, too large, no group selected
        403: caller does not belong to the organization
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    organization_id = _parse_organization_id(organizationId)
    is_org_wide = (isOrgWide or "").lower() == "true"
    group_ids = parse_group_ids(groupIds)
    if not is_org_wide and not group_ids:
        raise HTTPException(
            status_code=400, detail="At least one group must be selected or document must be org-wide"
        )

    max_bytes = request.app.state.settings.MAX_UPLOAD_BYTES
    body = await file.read()
    if len(body) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds {max_bytes // (1024 * 1024)}MB limit",
        )

    await require_organization_access(user, organization_id)

    blob_store = request.app.state.blob_store
    filename = file.filename or "document"
    file_type = file.content_type or "application/octet-stream"
    key = blob_store.generate_key(str(organization_id), filename)
    await run_in_threadpool(
        blob_store.upload,
        key,
        body,
        file_type,
        {"organization_id": organization_id, "uploaded_by": user.id, "filename": filename},
    )

    try:
        document = await run_in_threadpool(
            create_document,
            user_id=user.id,
            organization_id=organization_id,
            filename=filename,
            file_type=file_type,
            file_size=len(body),
            storage_key=key,
            is_org_wide=is_org_wide,
            group_ids=group_ids,
        )
    except Exception:
        try:
            await run_in_threadpool(blob_store.delete, key)
        except Exception:
            logger.exception("Failed to remove orphaned object %s", key)
        raise

    sync_job_id = await _trigger_sync(request, document["id"])
    return {"success": True, "document": document, "sync_job_id": sync_job_id}


async def _trigger_sync(request: Request, document_id: UUID) -> Optional[str]:
    rag_client = getattr(request.app.state, "rag_client", None)
    if rag_client is None or not rag_client.default_rag_id:
        logger.warning("AutoRAG is not configured, skipping sync for document %s", document_id)
        return None
    try:
        job_id = await rag_client.sync_documents()
    except AnswerProviderError as e:
        logger.error("AutoRAG sync failed for document %s: %s", document_id, e)
        return None
    if job_id:
        await run_in_threadpool(record_index_reference, document_id=document_id, rag_index_id=job_id)
    return job_id


@router.get("/{document_id}", response_model=DocumentDetailResponse)
async def document(document_id: UUID, request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    """Document metadata with a presigned download URL valid for one hour."""
    doc = await run_in_threadpool(get_document, document_id=document_id)
    await require_organization_access(user, doc["organization_id"])
    url = await run_in_threadpool(request.app.state.blob_store.download_url, doc["storage_key"])
    return {"document": doc, "url": url}


@router.delete("/{document_id}", response_model=SuccessResponse)
async def remove_document(document_id: UUID, request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    """Delete the stored object, then the document row.

    A failed object delete is logged and the row is deleted anyway.
    """
    doc = await run_in_threadpool(get_document, document_id=document_id)
    await require_organization_access(user, doc["organization_id"])
    try:
        await run_in_threadpool(request.app.state.blob_store.delete, doc["storage_key"])
    except Exception:
        logger.exception("Failed to delete stored object %s", doc["storage_key"])
    await run_in_threadpool(delete_document, document_id=document_id)
    return {"success": True}


@router.patch("/{document_id}/embedding-status", response_model=DocumentOut)
async def embedding_status(
    document_id: UUID, data: EmbeddingStatusUpdate, user: AuthenticatedUser = Depends(get_current_user)
):
    """Move a document from ``pending`` to ``completed`` or ``failed`` (409 once it left ``pending``)."""
    doc = await run_in_threadpool(get_document, document_id=document_id)
    await require_organization_admin(user, doc["organization_id"])
    return await run_in_threadpool(
        update_embedding_status, document_id=document_id, status=data.status, rag_index_id=data.rag_index_id
    )
