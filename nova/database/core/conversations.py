"""
Conversation store: service-layer operations for conversations and messages.

All functions are wrapped with the `@transactional` decorator, which manages
SQLAlchemy sessions and transactions automatically. Each function accepts (and
uses) an injected `session: Session` provided by the decorator, so callers pass
every other argument by keyword.

Guarantees
----------
- Messages are append-only and listed oldest first.
- ``created_at`` is strictly increasing within a conversation: a new message is
  never stamped at or before the conversation's latest message.
- A title, once set, is never overwritten by ``set_title_if_unset``.
- Every call reads fresh from the database; nothing is cached.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.helpers.transactionManagement import transactional
from nova.database.daos.conversation_dao import ConversationDao
from nova.database.daos.user_message_dao import MessagesDao
from nova.database.entities.conversations import Conversation
from nova.database.entities.messages import Message, MessageRole
from nova.database.core.exceptions import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def message_to_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "role": message.role.value,
        "content": message.content,
        "created_at": as_utc(message.created_at),
    }


def conversation_to_dict(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "user_id": conversation.user_id,
        "group_id": conversation.group_id,
        "title": conversation.title,
        "created_at": as_utc(conversation.created_at),
        "updated_at": as_utc(conversation.updated_at),
    }


def _get_conversation(session: Session, conversation_id: UUID) -> Conversation:
    conversation = ConversationDao().fetchConversationById(session, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


@transactional
def create_conversation(session: Session, user_id: UUID, group_id: UUID) -> dict:
    """
    Create a new, untitled conversation bound to (user, group).

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Owner of the conversation.
    group_id : UUID
        Group the conversation is scoped to for its whole life.

    Returns
    -------
    dict
        {'id', 'user_id', 'group_id', 'title' (None), 'created_at', 'updated_at'}
    """
    conversation = ConversationDao().createConversation(
        session, Conversation(user_id=user_id, group_id=group_id)
    )
    logger.info("Created conversation %s in group %s", conversation.id, group_id)
    return conversation_to_dict(conversation)


@transactional
def fetch_conversation(session: Session, conversation_id: UUID) -> dict | None:
    """Return the conversation as a dict, or None when it does not exist."""
    conversation = ConversationDao().fetchConversationById(session, conversation_id)
    return conversation_to_dict(conversation) if conversation else None


@transactional
def append_message(session: Session, conversation_id: UUID, role: MessageRole | str, content: str) -> dict:
    """
    Append a message to a conversation, timestamped now.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    conversation_id : UUID
        Parent conversation.
    role : MessageRole | str
        ``user`` or ``assistant``.
    content : str
        Message body, stored verbatim.

    Returns
    -------
    dict
        {'id', 'conversation_id', 'role', 'content', 'created_at'}

    Notes
    -----
    When the clock has not advanced past the latest stored message (same tick
    or clock skew), the new message is stamped one microsecond after it.
    """
    role = MessageRole(role)
    messages_dao = MessagesDao()
    _get_conversation(session, conversation_id)
    timestamp = datetime.now(timezone.utc)
    latest = messages_dao.fetchLatestMessage(session, conversation_id)
    if latest is not None:
        latest_at = as_utc(latest.created_at)
        if timestamp <= latest_at:
            timestamp = latest_at + timedelta(microseconds=1)
    message = messages_dao.createMessage(
        session,
        Message(conversation_id=conversation_id, role=role, content=content, created_at=timestamp),
    )
    return message_to_dict(message)


@transactional
def list_messages(session: Session, conversation_id: UUID) -> list[dict]:
    """
    List all messages for a conversation, oldest first.

    Returns
    -------
    list[dict]
        Each item: {'id', 'conversation_id', 'role', 'content', 'created_at'}.
        Empty list when the conversation has no messages.
    """
    messages = MessagesDao().fetchMessagesByConversationId(session, conversation_id)
    return [message_to_dict(message) for message in messages]


@transactional
def set_title_if_unset(session: Session, conversation_id: UUID, title: str) -> bool:
    """
    Set the conversation title unless one is already present.

    Returns
    -------
    bool
        True when the title was written.
    """
    conversation_dao = ConversationDao()
    conversation = _get_conversation(session, conversation_id)
    if conversation.title is not None:
        return False
    conversation_dao.updateConversationTitle(session, conversation, title)
    conversation_dao.updateConversationByDate(session, conversation, datetime.now(timezone.utc))
    return True


@transactional
def touch_updated_at(session: Session, conversation_id: UUID) -> None:
    conversation = _get_conversation(session, conversation_id)
    ConversationDao().updateConversationByDate(session, conversation, datetime.now(timezone.utc))


@transactional
def complete_exchange(session: Session, conversation_id: UUID, content: str, title: str | None = None) -> dict:
    """
    Persist the assistant side of an exchange in one transaction.

    Appends the assistant message, bumps ``updated_at`` and, when `title` is
    given, sets it if the conversation is still untitled. Either all of it is
    committed or none of it.

    Returns
    -------
    dict
        The stored assistant message.
    """
    message = append_message(conversation_id=conversation_id, role=MessageRole.assistant, content=content)
    touch_updated_at(conversation_id=conversation_id)
    if title is not None:
        set_title_if_unset(conversation_id=conversation_id, title=title)
    return message


@transactional
def get_conversation_detail(session: Session, conversation_id: UUID, user_id: UUID) -> dict:
    """
    Conversation with its group, organization and ordered messages.

    Raises
    ------
    NotFoundError
        The conversation does not exist.
    PermissionDeniedError
        The conversation belongs to another user.
    """
    row = ConversationDao().fetchConversationWithGroup(session, conversation_id)
    if row is None:
        raise NotFoundError("Conversation not found")
    conversation, group, organization = row
    if conversation.user_id != user_id:
        raise PermissionDeniedError("Access denied")
    messages = MessagesDao().fetchMessagesByConversationId(session, conversation_id)
    detail = conversation_to_dict(conversation)
    detail["group"] = {
        "id": group.id,
        "name": group.name,
        "organization_id": organization.id,
        "organization_name": organization.name,
    }
    return {"conversation": detail, "messages": [message_to_dict(message) for message in messages]}


@transactional
def list_conversations(session: Session, user_id: UUID) -> list[dict]:
    """
    List a user's conversations, most recently updated first.

    Returns
    -------
    list[dict]
        Each item carries the conversation fields, its ``group`` (with
        organization) and ``last_message`` ({'content', 'created_at'} or None).
    """
    messages_dao = MessagesDao()
    conversations = []
    for conversation, group, organization in ConversationDao().fetchConversationsByUserId(session, user_id):
        item = conversation_to_dict(conversation)
        item["group"] = {
            "id": group.id,
            "name": group.name,
            "organization_id": organization.id,
            "organization_name": organization.name,
        }
        latest = messages_dao.fetchLatestMessage(session, conversation.id)
        item["last_message"] = (
            {"content": latest.content, "created_at": as_utc(latest.created_at)} if latest else None
        )
        conversations.append(item)
    return conversations
