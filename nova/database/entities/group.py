"""
Group ORM Models
================

A ``Group`` is the knowledge-scoping unit inside an organization: documents are
assigned to groups and every conversation is bound to one group. Access to a
group is granted only by an explicit ``GroupMember`` row.

Key features
~~~~~~~~~~~~
- ``rag_instance_id``: the AutoRAG instance that answers questions for the group
- At most one membership row per (user, group)
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import TEXT, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import uuid
from datetime import datetime, timezone


class Group(declarativeBase):
    """
    ORM model for the `knowledge_group` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    organization_id : UUID
        Owning organization.
    name : str
        Group name.
    description : str | None
        Free-text description.
    rag_instance_id : str | None
        AutoRAG instance bound to the group; the configured default is used when null.
    created_at, updated_at : datetime
        Row timestamps (UTC).
    """

    __tablename__ = "knowledge_group"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[str] = mapped_column(TEXT, nullable=True)
    rag_instance_id: Mapped[str] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(
        self,
        organization_id: UUID,
        name: str,
        description: str | None = None,
        rag_instance_id: str | None = None,
    ):
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.organization_id = organization_id
        self.name = name
        self.description = description
        self.rag_instance_id = rag_instance_id
        self.created_at = now
        self.updated_at = now

    def __str__(self) -> str:
        return f"Group: id:{self.id}, name: {self.name}, organization: {self.organization_id}"


class GroupMember(declarativeBase):
    """ORM model for the `group_member` table (explicit group access)."""

    __tablename__ = "group_member"
    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_group_member"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    group_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("knowledge_group.id", ondelete="CASCADE"), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, user_id: UUID, group_id: UUID):
        self.id = uuid.uuid4()
        self.user_id = user_id
        self.group_id = group_id
        self.joined_at = datetime.now(timezone.utc)
