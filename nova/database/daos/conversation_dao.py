"""
Conversation DAO

Purpose
-------
Provides a thin data-access layer for the `Conversation` ORM entity:
- Create conversations
- Query by id (optionally with group and organization) or by owner
- Update `updated_at` and `title`
- Delete the conversations of a set of groups

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller (no session
  creation inside the DAO). This keeps transaction boundaries in the service
  layer where they belong.
- Uses straightforward ORM queries (`session.query(...).filter(...).all()`).

Usage
-----
.. code-block:: python

    from nova.database.config.connection_engine import SessionLocal
    from nova.database.entities.conversations import Conversation
    from nova.database.daos.conversation_dao import ConversationDao

    dao = ConversationDao()
    with SessionLocal() as session:
        conv = dao.createConversation(session, Conversation(user_id=..., group_id=...))
        items = dao.fetchConversationsByUserId(session, user_id=conv.user_id)
        session.commit()

Error Handling
--------------
- Methods catch generic `Exception`, log the error message, and re-raise.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.orm import Session
from nova.database.entities.conversations import Conversation
from nova.database.entities.group import Group
from nova.database.entities.organization import Organization

logger = logging.getLogger(__name__)


class ConversationDao:
    """
    Data Access Object (DAO) for managing Conversation entities.
    Provides CRUD operations on the `conversation` table.
    """

    def createConversation(self, session: Session, conversation: Conversation) -> Conversation:
        """
        Create a new conversation record.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation : Conversation
            Conversation entity instance to be added.

        Raises
        ------
        Exception
            If the conversation cannot be created.
        """
        try:
            session.add(conversation)
            session.flush()
            return conversation
        except Exception as e:
            logger.error("Error in ConversationDao.createConversation. Error: %s", e)
            raise e

    def fetchConversationById(self, session: Session, conversation_id: UUID) -> Conversation | None:
        try:
            return session.get(Conversation, conversation_id)
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationById. Error: %s", e)
            raise e

    def fetchConversationWithGroup(self, session: Session, conversation_id: UUID) -> tuple[Conversation, Group, Organization] | None:
        """
        Fetch a conversation with its group and the group's organization.

        Returns
        -------
        tuple[Conversation, Group, Organization] | None
        """
        try:
            return (
                session.query(Conversation, Group, Organization)
                .join(Group, Group.id == Conversation.group_id)
                .join(Organization, Organization.id == Group.organization_id)
                .filter(Conversation.id == conversation_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationWithGroup. Error: %s", e)
            raise e

    def fetchConversationsByUserId(self, session: Session, user_id: UUID) -> list[tuple[Conversation, Group, Organization]]:
        """
        Fetch all conversations belonging to a specific user,
        ordered by most recently updated.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Unique identifier of the user.

        Returns
        -------
        list[tuple[Conversation, Group, Organization]]
        """
        try:
            return (
                session.query(Conversation, Group, Organization)
                .join(Group, Group.id == Conversation.group_id)
                .join(Organization, Organization.id == Group.organization_id)
                .filter(Conversation.user_id == user_id)
                .order_by(desc(Conversation.updated_at))
                .all()
            )
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationsByUserId. Error: %s", e)
            raise e

    def updateConversationByDate(self, session: Session, conversation: Conversation, timestamp: datetime) -> None:
        """
        Update the `updated_at` timestamp for a conversation.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        conversation : Conversation
            Conversation to bump.
        timestamp : datetime
            New timestamp value.
        """
        try:
            conversation.updated_at = timestamp
        except Exception as e:
            logger.error("Error in ConversationDao.updateConversationByDate. Error: %s", e)
            raise e

    def updateConversationTitle(self, session: Session, conversation: Conversation, title: str) -> None:
        try:
            conversation.title = title
        except Exception as e:
            logger.error("Error in ConversationDao.updateConversationTitle. Error: %s", e)
            raise e

    def fetchConversationIdsByGroupIds(self, session: Session, group_ids: list[UUID]) -> list[UUID]:
        if not group_ids:
            return []
        try:
            rows = session.query(Conversation.id).filter(Conversation.group_id.in_(group_ids)).all()
            return [row[0] for row in rows]
        except Exception as e:
            logger.error("Error in ConversationDao.fetchConversationIdsByGroupIds. Error: %s", e)
            raise e

    def deleteConversationsByIds(self, session: Session, conversation_ids: list[UUID]) -> int:
        if not conversation_ids:
            return 0
        try:
            return (
                session.query(Conversation)
                .filter(Conversation.id.in_(conversation_ids))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Error in ConversationDao.deleteConversationsByIds. Error: %s", e)
            raise e
