"""
Group DAO

Purpose
-------
Provides a thin data-access layer for the `Group` and `GroupMember` ORM entities:
- Create, read, update and delete groups
- Add, check and list explicit group memberships
- List a user's groups (with their organization)

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller.
- Group visibility is strict: a user sees a group only through a `GroupMember` row.

Error Handling
--------------
- Methods catch generic `Exception`, log the error message, and re-raise.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.entities.group import Group, GroupMember
from nova.database.entities.organization import Organization
from nova.database.entities.user import User

logger = logging.getLogger(__name__)


class GroupDao:
    """
    Data Access Object (DAO) for groups and group memberships.
    """

    def createGroup(self, session: Session, group: Group) -> Group:
        try:
            session.add(group)
            session.flush()
            return group
        except Exception as e:
            logger.error("Error in GroupDao.createGroup. Error: %s", e)
            raise e

    def fetchGroupById(self, session: Session, group_id: UUID) -> Group | None:
        try:
            return session.get(Group, group_id)
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupById. Error: %s", e)
            raise e

    def fetchGroupWithOrganization(self, session: Session, group_id: UUID) -> tuple[Group, Organization] | None:
        """
        Fetch a group together with its owning organization.

        Returns
        -------
        tuple[Group, Organization] | None
        """
        try:
            return (
                session.query(Group, Organization)
                .join(Organization, Organization.id == Group.organization_id)
                .filter(Group.id == group_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupWithOrganization. Error: %s", e)
            raise e

    def fetchGroupsByOrganizationId(self, session: Session, organization_id: UUID) -> list[Group]:
        try:
            return (
                session.query(Group)
                .filter(Group.organization_id == organization_id)
                .order_by(Group.created_at)
                .all()
            )
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupsByOrganizationId. Error: %s", e)
            raise e

    def fetchGroupsByUserId(self, session: Session, user_id: UUID, organization_id: UUID | None = None) -> list[tuple[Group, Organization]]:
        """
        List the groups a user is an explicit member of.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Member whose groups are listed.
        organization_id : UUID | None
            Restrict the listing to one organization.

        Returns
        -------
        list[tuple[Group, Organization]]
        """
        try:
            query = (
                session.query(Group, Organization)
                .join(GroupMember, GroupMember.group_id == Group.id)
                .join(Organization, Organization.id == Group.organization_id)
                .filter(GroupMember.user_id == user_id)
            )
            if organization_id is not None:
                query = query.filter(Group.organization_id == organization_id)
            return query.order_by(Group.created_at).all()
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupsByUserId. Error: %s", e)
            raise e

    def updateGroup(self, session: Session, group: Group, values: dict) -> Group:
        """
        Apply `values` to `group`. Only name, description and rag_instance_id are writable;
        keys that are absent are left untouched.
        """
        try:
            for key in ("name", "description", "rag_instance_id"):
                if key in values:
                    setattr(group, key, values[key])
            return group
        except Exception as e:
            logger.error("Error in GroupDao.updateGroup. Error: %s", e)
            raise e

    def deleteGroup(self, session: Session, group: Group) -> None:
        try:
            session.delete(group)
        except Exception as e:
            logger.error("Error in GroupDao.deleteGroup. Error: %s", e)
            raise e

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------
    def createGroupMember(self, session: Session, member: GroupMember) -> GroupMember:
        try:
            session.add(member)
            session.flush()
            return member
        except Exception as e:
            logger.error("Error in GroupDao.createGroupMember. Error: %s", e)
            raise e

    def fetchGroupMember(self, session: Session, user_id: UUID, group_id: UUID) -> GroupMember | None:
        try:
            return (
                session.query(GroupMember)
                .filter(GroupMember.user_id == user_id, GroupMember.group_id == group_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupMember. Error: %s", e)
            raise e

    def fetchGroupMembers(self, session: Session, group_id: UUID) -> list[tuple[GroupMember, User]]:
        try:
            return (
                session.query(GroupMember, User)
                .join(User, User.id == GroupMember.user_id)
                .filter(GroupMember.group_id == group_id)
                .order_by(GroupMember.joined_at)
                .all()
            )
        except Exception as e:
            logger.error("Error in GroupDao.fetchGroupMembers. Error: %s", e)
            raise e

    def deleteGroupMembersByGroupIds(self, session: Session, group_ids: list[UUID], user_id: UUID | None = None) -> int:
        """
        Delete memberships of the given groups, optionally only those of `user_id`.

        Returns
        -------
        int
            Number of deleted rows.
        """
        if not group_ids:
            return 0
        try:
            query = session.query(GroupMember).filter(GroupMember.group_id.in_(group_ids))
            if user_id is not None:
                query = query.filter(GroupMember.user_id == user_id)
            return query.delete(synchronize_session=False)
        except Exception as e:
            logger.error("Error in GroupDao.deleteGroupMembersByGroupIds. Error: %s", e)
            raise e
