"""
Document DAO

Purpose
-------
Data-access layer for the `Document` and `DocumentGroup` ORM entities:
- Create, read and delete documents
- Assign documents to groups and read the assignments back
- List an organization's documents together with their uploader
- Update the embedding status

Error Handling
--------------
- Methods catch generic `Exception`, log the error message, and re-raise.
"""

import logging
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session
from nova.database.entities.document import Document, DocumentGroup, EmbeddingStatus
from nova.database.entities.user import User

logger = logging.getLogger(__name__)


class DocumentDao:
    """
    Data Access Object (DAO) for documents and their group assignments.
    """

    def createDocument(self, session: Session, document: Document) -> Document:
        try:
            session.add(document)
            session.flush()
            return document
        except Exception as e:
            logger.error("Error in DocumentDao.createDocument. Error: %s", e)
            raise e

    def fetchDocumentById(self, session: Session, document_id: UUID) -> Document | None:
        try:
            return session.get(Document, document_id)
        except Exception as e:
            logger.error("Error in DocumentDao.fetchDocumentById. Error: %s", e)
            raise e

    def fetchDocumentsByOrganizationId(self, session: Session, organization_id: UUID) -> list[tuple[Document, User]]:
        """
        List an organization's documents, newest first, with the uploading user.

        Returns
        -------
        list[tuple[Document, User]]
        """
        try:
            return (
                session.query(Document, User)
                .join(User, User.id == Document.uploaded_by)
                .filter(Document.organization_id == organization_id)
                .order_by(desc(Document.uploaded_at))
                .all()
            )
        except Exception as e:
            logger.error("Error in DocumentDao.fetchDocumentsByOrganizationId. Error: %s", e)
            raise e

    def fetchDocumentIdsByOrganizationId(self, session: Session, organization_id: UUID) -> list[UUID]:
        try:
            rows = session.query(Document.id).filter(Document.organization_id == organization_id).all()
            return [row[0] for row in rows]
        except Exception as e:
            logger.error("Error in DocumentDao.fetchDocumentIdsByOrganizationId. Error: %s", e)
            raise e

    def assignDocumentToGroups(self, session: Session, document_id: UUID, group_ids: list[UUID]) -> list[DocumentGroup]:
        """
        Link a document to each group in `group_ids`.

        Returns
        -------
        list[DocumentGroup]
            The staged assignment rows (empty when `group_ids` is empty).
        """
        if not group_ids:
            return []
        try:
            assignments = [DocumentGroup(document_id=document_id, group_id=group_id) for group_id in group_ids]
            session.add_all(assignments)
            session.flush()
            return assignments
        except Exception as e:
            logger.error("Error in DocumentDao.assignDocumentToGroups. Error: %s", e)
            raise e

    def fetchGroupIdsByDocumentId(self, session: Session, document_id: UUID) -> list[UUID]:
        try:
            rows = (
                session.query(DocumentGroup.group_id)
                .filter(DocumentGroup.document_id == document_id)
                .order_by(DocumentGroup.assigned_at)
                .all()
            )
            return [row[0] for row in rows]
        except Exception as e:
            logger.error("Error in DocumentDao.fetchGroupIdsByDocumentId. Error: %s", e)
            raise e

    def updateEmbeddingStatus(self, session: Session, document: Document, status: EmbeddingStatus, rag_index_id: str | None = None) -> Document:
        try:
            document.embedding_status = EmbeddingStatus(status)
            if rag_index_id is not None:
                document.rag_index_id = rag_index_id
            return document
        except Exception as e:
            logger.error("Error in DocumentDao.updateEmbeddingStatus. Error: %s", e)
            raise e

    def deleteDocument(self, session: Session, document: Document) -> None:
        try:
            session.query(DocumentGroup).filter(DocumentGroup.document_id == document.id).delete(synchronize_session=False)
            session.delete(document)
        except Exception as e:
            logger.error("Error in DocumentDao.deleteDocument. Error: %s", e)
            raise e

    def deleteAssignmentsByGroupIds(self, session: Session, group_ids: list[UUID]) -> int:
        if not group_ids:
            return 0
        try:
            return (
                session.query(DocumentGroup)
                .filter(DocumentGroup.group_id.in_(group_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Error in DocumentDao.deleteAssignmentsByGroupIds. Error: %s", e)
            raise e

    def deleteDocumentsByIds(self, session: Session, document_ids: list[UUID]) -> int:
        if not document_ids:
            return 0
        try:
            session.query(DocumentGroup).filter(DocumentGroup.document_id.in_(document_ids)).delete(synchronize_session=False)
            return (
                session.query(Document)
                .filter(Document.id.in_(document_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Error in DocumentDao.deleteDocumentsByIds. Error: %s", e)
            raise e
