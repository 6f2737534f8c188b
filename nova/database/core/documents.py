"""
Service-layer operations for documents and their group assignments.

All functions are wrapped with the `@transactional` decorator. Object storage
is not touched here; the API layer uploads or deletes the object and records
the metadata through these functions.

Embedding status lifecycle
--------------------------
``pending`` → ``completed`` or ``pending`` → ``failed``. Any other transition
raises ``ConflictError``.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.helpers.transactionManagement import transactional
from nova.database.daos.document_dao import DocumentDao
from nova.database.daos.group_dao import GroupDao
from nova.database.entities.document import Document, EmbeddingStatus
from nova.database.core.conversations import as_utc
from nova.database.core.exceptions import ConflictError, InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def document_to_dict(document: Document, group_ids: list[UUID] | None = None) -> dict:
    data = {
        "id": document.id,
        "organization_id": document.organization_id,
        "uploaded_by": document.uploaded_by,
        "filename": document.filename,
        "file_type": document.file_type,
        "file_size": document.file_size,
        "storage_key": document.storage_key,
        "embedding_status": document.embedding_status.value,
        "rag_index_id": document.rag_index_id,
        "uploaded_at": as_utc(document.uploaded_at),
    }
    if group_ids is not None:
        data["group_ids"] = group_ids
    return data


def _get_document(session: Session, document_id: UUID) -> Document:
    document = DocumentDao().fetchDocumentById(session, document_id)
    if document is None:
        raise NotFoundError("Document not found")
    return document


@transactional
def create_document(
    session: Session,
    user_id: UUID,
    organization_id: UUID,
    filename: str,
    file_type: str,
    file_size: int,
    storage_key: str,
    is_org_wide: bool = False,
    group_ids: list[UUID] | None = None,
) -> dict:
    """
    Record an uploaded document and assign it to groups.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Uploader.
    organization_id : UUID
        Owning organization.
    filename, file_type : str
        Original filename and MIME type.
    file_size : int
        Size in bytes.
    storage_key : str
        Object key the file was stored under.
    is_org_wide : bool
        Assign the document to every current group of the organization.
    group_ids : list[UUID] | None
        Explicit groups; ignored when `is_org_wide` is set.

    Returns
    -------
    dict
        The document, with ``group_ids``.

    Raises
    ------
    InvalidRequestError
        No group is selected, or a selected group belongs to another organization.
    """
    document_dao = DocumentDao()
    organization_group_ids = [group.id for group in GroupDao().fetchGroupsByOrganizationId(session, organization_id)]
    if is_org_wide:
        target_group_ids = organization_group_ids
    else:
        target_group_ids = list(dict.fromkeys(group_ids or []))
        if not target_group_ids:
            raise InvalidRequestError("Select at least one group or mark the document as organization-wide")
        foreign = [group_id for group_id in target_group_ids if group_id not in organization_group_ids]
        if foreign:
            raise InvalidRequestError("Groups must belong to the document's organization")

    document = document_dao.createDocument(
        session,
        Document(
            organization_id=organization_id,
            uploaded_by=user_id,
            filename=filename,
            file_type=file_type,
            file_size=file_size,
            storage_key=storage_key,
        ),
    )
    document_dao.assignDocumentToGroups(session, document.id, target_group_ids)
    logger.info("Recorded document %s assigned to %d groups", document.id, len(target_group_ids))
    return document_to_dict(document, target_group_ids)


@transactional
def list_organization_documents(session: Session, organization_id: UUID) -> list[dict]:
    """Documents of an organization, newest first, with ``uploader`` and ``group_ids``."""
    document_dao = DocumentDao()
    documents = []
    for document, uploader in document_dao.fetchDocumentsByOrganizationId(session, organization_id):
        item = document_to_dict(document, document_dao.fetchGroupIdsByDocumentId(session, document.id))
        item["uploader"] = {"id": uploader.id, "name": uploader.name, "email": uploader.email}
        documents.append(item)
    return documents


@transactional
def get_document(session: Session, document_id: UUID) -> dict:
    document = _get_document(session, document_id)
    return document_to_dict(document, DocumentDao().fetchGroupIdsByDocumentId(session, document_id))


@transactional
def delete_document(session: Session, document_id: UUID) -> dict:
    """
    Delete a document row and its assignments.

    Returns
    -------
    dict
        The deleted document (its ``storage_key`` is needed for object cleanup).
    """
    document = _get_document(session, document_id)
    data = document_to_dict(document)
    DocumentDao().deleteDocument(session, document)
    return data


@transactional
def record_index_reference(session: Session, document_id: UUID, rag_index_id: str) -> None:
    """Remember the indexing job (or index entry) a document was submitted to."""
    document = _get_document(session, document_id)
    document.rag_index_id = rag_index_id


@transactional
def update_embedding_status(session: Session, document_id: UUID, status: EmbeddingStatus | str, rag_index_id: str | None = None) -> dict:
    """
    Move a document out of ``pending``.

    Raises
    ------
    InvalidRequestError
        `status` is unknown or is ``pending``.
    ConflictError
        The document already left ``pending``.
    NotFoundError
        The document does not exist.
    """
    try:
        new_status = EmbeddingStatus(status)
    except ValueError:
        raise InvalidRequestError(f"Invalid embedding status: {status}")
    if new_status is EmbeddingStatus.pending:
        raise InvalidRequestError("Embedding status can only move to completed or failed")
    document = _get_document(session, document_id)
    if document.embedding_status is not EmbeddingStatus.pending:
        raise ConflictError(
            f"Embedding status is already {document.embedding_status.value} and cannot change"
        )
    DocumentDao().updateEmbeddingStatus(session, document, new_status, rag_index_id=rag_index_id)
    return document_to_dict(document)
