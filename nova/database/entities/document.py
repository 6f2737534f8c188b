"""
Document ORM Models
===================

``Document`` records a file uploaded to object storage on behalf of an
organization. ``DocumentGroup`` assigns a document to the groups whose
knowledge base should include it.

Key features
~~~~~~~~~~~~
- ``storage_key``: object key inside the documents bucket
- ``embedding_status``: ``pending`` until the indexer reports ``completed`` or ``failed``
- Composite primary key on (document, group) assignments
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import TEXT, BigInteger, DateTime, Enum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import enum
import uuid
from datetime import datetime, timezone


class EmbeddingStatus(str, enum.Enum):
    """Indexing state of a document. Only ``pending`` may change."""

    pending = "pending"
    completed = "completed"
    failed = "failed"


class Document(declarativeBase):
    """
    ORM model for the `document` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    organization_id : UUID
        Owning organization.
    uploaded_by : UUID
        User who uploaded the file.
    filename : str
        Original filename.
    file_type : str
        MIME type reported at upload.
    file_size : int
        Size in bytes.
    storage_key : str
        Object key in the documents bucket.
    embedding_status : EmbeddingStatus
        Indexing state.
    rag_index_id : str | None
        Identifier of the indexing job or index entry, when known.
    uploaded_at : datetime
        Upload timestamp (UTC).
    """

    __tablename__ = "document"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    filename: Mapped[str] = mapped_column(TEXT, nullable=False)
    file_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_key: Mapped[str] = mapped_column(TEXT, nullable=False)
    embedding_status: Mapped[EmbeddingStatus] = mapped_column(
        Enum(EmbeddingStatus, native_enum=False, length=16), nullable=False
    )
    rag_index_id: Mapped[str] = mapped_column(TEXT, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(
        self,
        organization_id: UUID,
        uploaded_by: UUID,
        filename: str,
        file_type: str,
        file_size: int,
        storage_key: str,
        rag_index_id: str | None = None,
    ):
        self.id = uuid.uuid4()
        self.organization_id = organization_id
        self.uploaded_by = uploaded_by
        self.filename = filename
        self.file_type = file_type
        self.file_size = file_size
        self.storage_key = storage_key
        self.embedding_status = EmbeddingStatus.pending
        self.rag_index_id = rag_index_id
        self.uploaded_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"Document: id:{self.id}, filename: {self.filename}, status: {self.embedding_status.value}"


class DocumentGroup(declarativeBase):
    """ORM model for the `document_group` table (document ↔ group assignment)."""

    __tablename__ = "document_group"

    document_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("document.id", ondelete="CASCADE"), primary_key=True)
    group_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("knowledge_group.id", ondelete="CASCADE"), primary_key=True)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, document_id: UUID, group_id: UUID):
        self.document_id = document_id
        self.group_id = group_id
        self.assigned_at = datetime.now(timezone.utc)
