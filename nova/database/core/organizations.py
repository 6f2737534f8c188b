"""
Service-layer operations for users, organizations, groups and memberships.

All functions are wrapped with the `@transactional` decorator, which manages
SQLAlchemy sessions and transactions automatically. Each function accepts (and
uses) an injected `session: Session` provided by the decorator.

Role checks (who may call what) happen in the API layer; these functions
enforce data invariants only:
- a user has at most one membership per organization and per group;
- a group's creator is always one of its members;
- deleting a group or organization removes everything scoped to it.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.helpers.transactionManagement import transactional
from nova.database.daos.user_dao import UserDao
from nova.database.daos.organization_dao import OrganizationDao
from nova.database.daos.group_dao import GroupDao
from nova.database.daos.conversation_dao import ConversationDao
from nova.database.daos.user_message_dao import MessagesDao
from nova.database.daos.document_dao import DocumentDao
from nova.database.entities.user import User
from nova.database.entities.organization import Organization, OrganizationMember, OrganizationRole
from nova.database.entities.group import Group, GroupMember
from nova.database.core.conversations import as_utc
from nova.database.core.exceptions import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "external_id": user.external_id,
        "email": user.email,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "created_at": as_utc(user.created_at),
        "updated_at": as_utc(user.updated_at),
    }


def organization_to_dict(organization: Organization, role: OrganizationRole | None = None) -> dict:
    data = {
        "id": organization.id,
        "name": organization.name,
        "description": organization.description,
        "created_at": as_utc(organization.created_at),
        "updated_at": as_utc(organization.updated_at),
    }
    if role is not None:
        data["role"] = role.value
    return data


def group_to_dict(group: Group, organization: Organization | None = None) -> dict:
    data = {
        "id": group.id,
        "organization_id": group.organization_id,
        "name": group.name,
        "description": group.description,
        "rag_instance_id": group.rag_instance_id,
        "created_at": as_utc(group.created_at),
        "updated_at": as_utc(group.updated_at),
    }
    if organization is not None:
        data["organization_name"] = organization.name
    return data


# ----------------------------------------------------------------------
# Users & onboarding
# ----------------------------------------------------------------------
@transactional
def get_user_by_external_id(session: Session, external_id: str) -> dict | None:
    """
    Resolve the local user linked to an identity-provider subject.

    Returns
    -------
    dict | None
        None when the subject has not completed onboarding.
    """
    user = UserDao().fetchUserByExternalId(session, external_id)
    return user_to_dict(user) if user else None


@transactional
def onboard_user(
    session: Session,
    external_id: str,
    email: str,
    name: str,
    organization_name: str,
    avatar_url: str | None = None,
) -> dict:
    """
    Create the local user and attach it to an organization.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    external_id : str
        Identity-provider subject of the caller.
    email, name : str
        Profile fields submitted by the caller.
    organization_name : str
        Organization to join; created when no organization has that name.
    avatar_url : str | None
        Profile picture reported by the identity provider.

    Returns
    -------
    dict
        - On success: {'res': True, 'user': {...}, 'organization': {...}}
        - On failure: {'res': False, 'detail': <reason>}

    Notes
    -----
    The creator of a new organization becomes its admin. Joining an
    organization that already exists grants the ``member`` role only.
    """
    user_dao = UserDao()
    organization_dao = OrganizationDao()
    if user_dao.fetchUserByExternalId(session, external_id) is not None:
        return {"res": False, "detail": "User already exists"}

    user = user_dao.createUser(session, User(external_id=external_id, email=email, name=name, avatar_url=avatar_url))
    organization = organization_dao.fetchOrganizationByName(session, organization_name)
    role = OrganizationRole.member
    if organization is None:
        organization = organization_dao.createOrganization(
            session, Organization(name=organization_name, description=f"{organization_name} organization")
        )
        role = OrganizationRole.admin
    organization_dao.createMembership(
        session, OrganizationMember(user_id=user.id, organization_id=organization.id, role=role)
    )
    logger.info("Onboarded user %s into organization %s as %s", user.id, organization.id, role.value)
    return {"res": True, "user": user_to_dict(user), "organization": organization_to_dict(organization, role)}


# ----------------------------------------------------------------------
# Organizations
# ----------------------------------------------------------------------
@transactional
def list_user_organizations(session: Session, user_id: UUID) -> list[dict]:
    """Organizations the user belongs to, each with the user's ``role``."""
    rows = OrganizationDao().fetchOrganizationsByUserId(session, user_id)
    return [organization_to_dict(organization, membership.role) for organization, membership in rows]


@transactional
def create_organization(session: Session, user_id: UUID, name: str, description: str | None = None) -> dict:
    """
    Create an organization with `user_id` as its first admin.

    Returns
    -------
    dict
        The organization, with ``role`` = ``admin``.
    """
    organization_dao = OrganizationDao()
    organization = organization_dao.createOrganization(session, Organization(name=name, description=description))
    organization_dao.createMembership(
        session, OrganizationMember(user_id=user_id, organization_id=organization.id, role=OrganizationRole.admin)
    )
    return organization_to_dict(organization, OrganizationRole.admin)


@transactional
def update_organization(session: Session, organization_id: UUID, name: str | None = None, description: str | None = None) -> dict:
    organization_dao = OrganizationDao()
    organization = organization_dao.fetchOrganizationById(session, organization_id)
    if organization is None:
        raise NotFoundError("Organization not found")
    organization_dao.updateOrganization(session, organization, {"name": name, "description": description})
    organization.updated_at = datetime.now(timezone.utc)
    return organization_to_dict(organization)


def _delete_groups(session: Session, group_ids: list[UUID]) -> None:
    conversation_dao = ConversationDao()
    conversation_ids = conversation_dao.fetchConversationIdsByGroupIds(session, group_ids)
    MessagesDao().deleteMessagesByConversationIds(session, conversation_ids)
    conversation_dao.deleteConversationsByIds(session, conversation_ids)
    DocumentDao().deleteAssignmentsByGroupIds(session, group_ids)
    GroupDao().deleteGroupMembersByGroupIds(session, group_ids)


@transactional
def delete_organization(session: Session, organization_id: UUID) -> list[str]:
    """
    Delete an organization and everything scoped to it.

    Groups, group memberships, conversations, messages, documents and
    document assignments go with it.

    Returns
    -------
    list[str]
        Storage keys of the deleted documents, for object cleanup by the caller.

    Raises
    ------
    NotFoundError
        The organization does not exist.
    """
    organization_dao = OrganizationDao()
    group_dao = GroupDao()
    document_dao = DocumentDao()
    organization = organization_dao.fetchOrganizationById(session, organization_id)
    if organization is None:
        raise NotFoundError("Organization not found")

    groups = group_dao.fetchGroupsByOrganizationId(session, organization_id)
    _delete_groups(session, [group.id for group in groups])
    for group in groups:
        group_dao.deleteGroup(session, group)

    storage_keys = [document.storage_key for document, _ in document_dao.fetchDocumentsByOrganizationId(session, organization_id)]
    document_dao.deleteDocumentsByIds(session, document_dao.fetchDocumentIdsByOrganizationId(session, organization_id))
    organization_dao.deleteMembershipsByOrganizationId(session, organization_id)
    organization_dao.deleteOrganization(session, organization)
    logger.info("Deleted organization %s (%d groups, %d documents)", organization_id, len(groups), len(storage_keys))
    return storage_keys


# ----------------------------------------------------------------------
# Organization members
# ----------------------------------------------------------------------
def _member_to_dict(membership: OrganizationMember, user: User) -> dict:
    return {
        "id": membership.id,
        "user_id": user.id,
        "organization_id": membership.organization_id,
        "role": membership.role.value,
        "joined_at": as_utc(membership.joined_at),
        "user": {"id": user.id, "name": user.name, "email": user.email, "avatar_url": user.avatar_url},
    }


@transactional
def list_organization_members(session: Session, organization_id: UUID) -> list[dict]:
    rows = OrganizationDao().fetchMembersByOrganizationId(session, organization_id)
    return [_member_to_dict(membership, user) for membership, user in rows]


def _get_membership_in(session: Session, organization_id: UUID, membership_id: UUID) -> OrganizationMember:
    membership = OrganizationDao().fetchMembershipById(session, membership_id)
    if membership is None or membership.organization_id != organization_id:
        raise NotFoundError("Member not found")
    return membership


@transactional
def update_member_role(session: Session, organization_id: UUID, membership_id: UUID, role: OrganizationRole | str) -> dict:
    """
    Change the role of a membership of `organization_id`.

    Raises
    ------
    InvalidRequestError
        `role` is not a known role.
    NotFoundError
        The membership does not exist or belongs to another organization.
    """
    try:
        new_role = OrganizationRole(role)
    except ValueError:
        raise InvalidRequestError(f"Invalid role: {role}")
    membership = _get_membership_in(session, organization_id, membership_id)
    OrganizationDao().updateMembershipRole(session, membership, new_role)
    user = UserDao().fetchUserById(session, membership.user_id)
    return _member_to_dict(membership, user)


@transactional
def remove_member(session: Session, organization_id: UUID, membership_id: UUID) -> None:
    """
    Remove a member from an organization together with their memberships
    in the organization's groups.
    """
    membership = _get_membership_in(session, organization_id, membership_id)
    group_ids = [group.id for group in GroupDao().fetchGroupsByOrganizationId(session, organization_id)]
    GroupDao().deleteGroupMembersByGroupIds(session, group_ids, user_id=membership.user_id)
    OrganizationDao().deleteMembership(session, membership)


# ----------------------------------------------------------------------
# Groups
# ----------------------------------------------------------------------
@transactional
def get_group(session: Session, group_id: UUID) -> dict:
    """
    Fetch a group with its organization name.

    Raises
    ------
    NotFoundError
        The group does not exist.
    """
    row = GroupDao().fetchGroupWithOrganization(session, group_id)
    if row is None:
        raise NotFoundError("Group not found")
    group, organization = row
    return group_to_dict(group, organization)


@transactional
def list_user_groups(session: Session, user_id: UUID, organization_id: UUID | None = None) -> list[dict]:
    """Groups the user is an explicit member of, optionally within one organization."""
    rows = GroupDao().fetchGroupsByUserId(session, user_id, organization_id=organization_id)
    return [group_to_dict(group, organization) for group, organization in rows]


@transactional
def create_group(
    session: Session,
    user_id: UUID,
    organization_id: UUID,
    name: str,
    description: str | None = None,
    rag_instance_id: str | None = None,
) -> dict:
    """
    Create a group inside an organization; the creator becomes its first member.

    Returns
    -------
    dict
        The new group.
    """
    group_dao = GroupDao()
    organization = OrganizationDao().fetchOrganizationById(session, organization_id)
    if organization is None:
        raise NotFoundError("Organization not found")
    group = group_dao.createGroup(
        session,
        Group(organization_id=organization_id, name=name, description=description, rag_instance_id=rag_instance_id),
    )
    group_dao.createGroupMember(session, GroupMember(user_id=user_id, group_id=group.id))
    return group_to_dict(group, organization)


@transactional
def update_group(session: Session, group_id: UUID, values: dict) -> dict:
    """
    Update name, description and/or rag_instance_id of a group.

    Parameters
    ----------
    values : dict
        Only the keys present are written.
    """
    group_dao = GroupDao()
    group = group_dao.fetchGroupById(session, group_id)
    if group is None:
        raise NotFoundError("Group not found")
    group_dao.updateGroup(session, group, values)
    group.updated_at = datetime.now(timezone.utc)
    return group_to_dict(group)


@transactional
def delete_group(session: Session, group_id: UUID) -> None:
    """Delete a group with its memberships, document assignments and conversations."""
    group_dao = GroupDao()
    group = group_dao.fetchGroupById(session, group_id)
    if group is None:
        raise NotFoundError("Group not found")
    _delete_groups(session, [group.id])
    group_dao.deleteGroup(session, group)
    logger.info("Deleted group %s", group_id)


@transactional
def list_group_members(session: Session, group_id: UUID) -> list[dict]:
    return [
        {
            "id": member.id,
            "user_id": user.id,
            "group_id": member.group_id,
            "joined_at": as_utc(member.joined_at),
            "user": {"id": user.id, "name": user.name, "email": user.email, "avatar_url": user.avatar_url},
        }
        for member, user in GroupDao().fetchGroupMembers(session, group_id)
    ]


# ----------------------------------------------------------------------
# Invitations
# ----------------------------------------------------------------------
@transactional
def accept_invitation(session: Session, user_id: UUID, organization_id: UUID, group_id: UUID) -> dict:
    """
    Grant the invited user access to a group.

    The user joins the organization as ``member`` when not already part of
    it, then joins the group.

    Returns
    -------
    dict
        - On success: {'res': True, 'organization': {...}, 'group': {...}}
        - On failure: {'res': False, 'detail': <reason>}
    """
    group_dao = GroupDao()
    organization_dao = OrganizationDao()
    row = group_dao.fetchGroupWithOrganization(session, group_id)
    if row is None or row[0].organization_id != organization_id:
        return {"res": False, "detail": "This invitation is no longer valid"}
    group, organization = row
    if group_dao.fetchGroupMember(session, user_id, group_id) is not None:
        return {"res": False, "detail": "You are already a member of this group"}
    if organization_dao.fetchMembership(session, user_id, organization_id) is None:
        organization_dao.createMembership(
            session, OrganizationMember(user_id=user_id, organization_id=organization_id, role=OrganizationRole.member)
        )
    group_dao.createGroupMember(session, GroupMember(user_id=user_id, group_id=group_id))
    logger.info("User %s joined group %s by invitation", user_id, group_id)
    return {
        "res": True,
        "organization": {"id": organization.id, "name": organization.name},
        "group": {"id": group.id, "name": group.name},
    }
