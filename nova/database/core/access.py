"""
Access control predicates.

Read-only checks over the membership tables, keyed by the local user id.
Group access is strict: a user may act inside a group only through an
explicit ``GroupMember`` row, never through organization membership alone.
A conversation is visible only to the user who owns it.

All functions are wrapped with `@transactional` and never write.
"""

from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.helpers.transactionManagement import transactional
from nova.database.daos.organization_dao import OrganizationDao
from nova.database.daos.group_dao import GroupDao
from nova.database.daos.conversation_dao import ConversationDao
from nova.database.entities.organization import OrganizationRole


@transactional
def role_in_organization(session: Session, user_id: UUID, organization_id: UUID) -> OrganizationRole | None:
    """
    Role of a user inside an organization.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Local user id.
    organization_id : UUID
        Organization to check.

    Returns
    -------
    OrganizationRole | None
        None when the user is not a member.
    """
    membership = OrganizationDao().fetchMembership(session, user_id, organization_id)
    return membership.role if membership else None


@transactional
def has_organization_access(session: Session, user_id: UUID, organization_id: UUID) -> bool:
    return OrganizationDao().fetchMembership(session, user_id, organization_id) is not None


@transactional
def is_member_of_group(session: Session, user_id: UUID, group_id: UUID) -> bool:
    """True when an explicit group membership row exists."""
    return GroupDao().fetchGroupMember(session, user_id, group_id) is not None


@transactional
def owns_conversation(session: Session, user_id: UUID, conversation_id: UUID) -> bool:
    conversation = ConversationDao().fetchConversationById(session, conversation_id)
    return conversation is not None and conversation.user_id == user_id
