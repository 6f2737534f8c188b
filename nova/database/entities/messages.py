"""
Message ORM Model
=================

The ``Message`` ORM model represents a single turn within a conversation.
Messages are append-only: they are never edited, reordered or deduplicated.

Key features
~~~~~~~~~~~~
- UUID primary key (``id``)
- Foreign key reference to ``conversation.id`` (``conversation_id``)
- Sender role (``user`` or ``assistant``)
- Timezone-aware ``created_at`` timestamp (UTC), strictly increasing per conversation
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import ForeignKey, DateTime, TEXT, Enum, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import enum
import uuid
from datetime import datetime, timezone


class MessageRole(str, enum.Enum):
    """Author of a message."""

    user = "user"
    assistant = "assistant"


class Message(declarativeBase):
    """
    ORM model for the `message` table.

    Attributes
    ----------
    id : UUID
        Primary key. Unique identifier for the message.
    conversation_id : UUID
        Foreign key reference to the `conversation` table.
    role : MessageRole
        Author of the message.
    content : str
        Message text.
    created_at : datetime
        Timestamp assigned by the store at append time.
    """

    __tablename__ = 'message'
    __table_args__ = (Index("ix_message_conversation_created", "conversation_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    """Primary key. UUID of the message."""

    conversation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey('conversation.id', ondelete="CASCADE"), nullable=False)
    """Foreign key to the conversation this message belongs to."""

    role: Mapped[MessageRole] = mapped_column(Enum(MessageRole, native_enum=False, length=16), nullable=False)
    """Role of the message sender."""

    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    """Text content of the message (cannot be null)."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Timestamp when the message was created."""

    def __init__(self, conversation_id: UUID, role: MessageRole, content: str, created_at: datetime):
        """
        Initialize a new Message object.

        Parameters
        ----------
        conversation_id : UUID
            ID of the conversation this message belongs to.
        role : MessageRole | str
            The author of the message.
        content : str
            The content of the message.
        created_at : datetime | str
            Timestamp. Accepts datetime or ISO8601 string.
        """
        self.id = uuid.uuid4()
        self.conversation_id = conversation_id
        self.role = MessageRole(role)
        self.content = content
        if isinstance(created_at, str):
            self.created_at = datetime.fromisoformat(created_at)
        else:
            self.created_at = created_at

    def __str__(self) -> str:
        return (
            f"Conversation: id:{self.conversation_id}, "
            f"role: {self.role.value}, "
            f"message: {self.content}, "
            f"time_created: {self.created_at}"
        )
