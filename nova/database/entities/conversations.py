"""
Conversation ORM Model
=======================

The ``Conversation`` ORM model represents a user-owned chat thread stored in the
``conversation`` table. A conversation is bound to exactly one group for its
whole life; the group decides which knowledge base answers inside it.

Key features
~~~~~~~~~~~~
- UUID primary key (``id``)
- Foreign key to the owning user (``user_id`` → ``app_user.id``)
- Foreign key to the scoping group (``group_id`` → ``knowledge_group.id``)
- Nullable ``title``: set once, from the first user message
- Timezone-aware ``created_at`` / ``updated_at`` timestamps (UTC)

Integration notes
~~~~~~~~~~~~~~~~~
- ``updated_at`` is bumped after every completed exchange and drives the
  "most recent first" ordering of the conversation list.
- Messages live in ``nova.database.entities.messages``.
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import ForeignKey, DateTime, TEXT, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import uuid
from datetime import datetime, timezone


class Conversation(declarativeBase):
    """
    ORM model for the `conversation` table.

    Attributes
    ----------
    id : UUID
        Primary key. Unique identifier for the conversation.
    user_id : UUID
        Owner of the conversation.
    group_id : UUID
        Group the conversation is scoped to.
    title : str | None
        Title derived from the first user message; null until the first exchange completes.
    created_at : datetime
        Creation timestamp (UTC).
    updated_at : datetime
        Timestamp of the last completed exchange or rename (UTC).
    """

    __tablename__ = 'conversation'

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    """Primary key. UUID of the conversation."""

    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('app_user.id', ondelete="CASCADE"), nullable=False)
    """Foreign key reference to the `app_user` table (owner)."""

    group_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('knowledge_group.id', ondelete="CASCADE"), nullable=False)
    """Foreign key reference to the `knowledge_group` table."""

    title: Mapped[str] = mapped_column(TEXT, nullable=True)
    """Conversation title (nullable until the first exchange)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    """Timestamp when the conversation was last updated (UTC, timezone-aware)."""

    def __init__(self, user_id: UUID, group_id: UUID, title: str | None = None, conversation_id: UUID | None = None):
        """
        Initialize a new Conversation object.

        Parameters
        ----------
        user_id : UUID
            The ID of the user who owns this conversation.
        group_id : UUID
            The group the conversation is scoped to.
        title : str | None
            Optional initial title. New chat turns always start with None.
        conversation_id : UUID | None
            Explicit primary key; generated when omitted.
        """
        now = datetime.now(timezone.utc)
        self.id = conversation_id or uuid.uuid4()
        self.user_id = user_id
        self.group_id = group_id
        self.title = title
        self.created_at = now
        self.updated_at = now

    def __str__(self) -> str:
        return (
            f"Conversation: id:{self.id}, user: {self.user_id}, group: {self.group_id}, title: {self.title}"
        )
