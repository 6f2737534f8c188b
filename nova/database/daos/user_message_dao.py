"""
Message DAO

Purpose
-------
Data-access layer for the append-only `Message` entity:
- Append a message to a conversation
- List a conversation's messages in chronological order
- Read the latest message (for timestamp monotonicity and list previews)
- Bulk delete the messages of removed conversations

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller.
- There is intentionally no update method; messages are never edited.
"""

import logging
from uuid import UUID

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session
from nova.database.entities.messages import Message

logger = logging.getLogger(__name__)


class MessagesDao:
    """
    Data Access Object (DAO) for managing Message entities.
    """

    def createMessage(self, session: Session, message: Message) -> Message:
        """
        Stage a new message.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        message : Message
            Message entity instance to be added.

        Returns
        -------
        Message
            The staged message.
        """
        try:
            session.add(message)
            session.flush()
            return message
        except Exception as e:
            logger.error("Error in MessagesDao.createMessage. Error: %s", e)
            raise e

    def fetchMessagesByConversationId(self, session: Session, conversation_id: UUID) -> list[Message]:
        """
        Fetch all messages for a conversation, oldest first.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation_id : UUID
            Conversation whose messages are listed.

        Returns
        -------
        list[Message]
        """
        try:
            return (
                session.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(asc(Message.created_at))
                .all()
            )
        except Exception as e:
            logger.error("Error in MessagesDao.fetchMessagesByConversationId. Error: %s", e)
            raise e

    def fetchLatestMessage(self, session: Session, conversation_id: UUID) -> Message | None:
        try:
            return (
                session.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(desc(Message.created_at))
                .first()
            )
        except Exception as e:
            logger.error("Error in MessagesDao.fetchLatestMessage. Error: %s", e)
            raise e

    def deleteMessagesByConversationIds(self, session: Session, conversation_ids: list[UUID]) -> int:
        if not conversation_ids:
            return 0
        try:
            return (
                session.query(Message)
                .filter(Message.conversation_id.in_(conversation_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Error in MessagesDao.deleteMessagesByConversationIds. Error: %s", e)
            raise e
