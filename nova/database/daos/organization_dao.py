"""
Organization DAO

Purpose
-------
Provides a thin data-access layer for the `Organization` and
`OrganizationMember` ORM entities:
- Create, read, update and delete organizations
- Create, read, re-role and delete memberships
- List a user's organizations (with role) and an organization's members (with user)

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller (no session
  creation inside the DAO). Transaction boundaries live in the service layer.
- Uses straightforward ORM queries (`session.query(...).filter(...)`).

Error Handling
--------------
- Methods catch generic `Exception`, log the error message, and re-raise.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.entities.organization import Organization, OrganizationMember, OrganizationRole
from nova.database.entities.user import User

logger = logging.getLogger(__name__)


class OrganizationDao:
    """
    Data Access Object (DAO) for organizations and their memberships.
    """

    def createOrganization(self, session: Session, organization: Organization) -> Organization:
        try:
            session.add(organization)
            session.flush()
            return organization
        except Exception as e:
            logger.error("Error in OrganizationDao.createOrganization. Error: %s", e)
            raise e

    def fetchOrganizationById(self, session: Session, organization_id: UUID) -> Organization | None:
        try:
            return session.get(Organization, organization_id)
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchOrganizationById. Error: %s", e)
            raise e

    def fetchOrganizationByName(self, session: Session, name: str) -> Organization | None:
        """
        Fetch the first organization with an exact name match.

        Returns
        -------
        Organization | None
        """
        try:
            return (
                session.query(Organization)
                .filter(Organization.name == name)
                .order_by(Organization.created_at)
                .first()
            )
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchOrganizationByName. Error: %s", e)
            raise e

    def updateOrganization(self, session: Session, organization: Organization, values: dict) -> Organization:
        """
        Apply `values` (column name → new value) to `organization`.

        Unknown keys are ignored; `None` values are skipped.
        """
        try:
            for key in ("name", "description"):
                if values.get(key) is not None:
                    setattr(organization, key, values[key])
            return organization
        except Exception as e:
            logger.error("Error in OrganizationDao.updateOrganization. Error: %s", e)
            raise e

    def deleteOrganization(self, session: Session, organization: Organization) -> None:
        try:
            session.delete(organization)
        except Exception as e:
            logger.error("Error in OrganizationDao.deleteOrganization. Error: %s", e)
            raise e

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------
    def createMembership(self, session: Session, membership: OrganizationMember) -> OrganizationMember:
        try:
            session.add(membership)
            session.flush()
            return membership
        except Exception as e:
            logger.error("Error in OrganizationDao.createMembership. Error: %s", e)
            raise e

    def fetchMembership(self, session: Session, user_id: UUID, organization_id: UUID) -> OrganizationMember | None:
        """
        Fetch the membership of `user_id` in `organization_id`.

        Returns
        -------
        OrganizationMember | None
            None when the user does not belong to the organization.
        """
        try:
            return (
                session.query(OrganizationMember)
                .filter(
                    OrganizationMember.user_id == user_id,
                    OrganizationMember.organization_id == organization_id,
                )
                .one_or_none()
            )
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchMembership. Error: %s", e)
            raise e

    def fetchMembershipById(self, session: Session, membership_id: UUID) -> OrganizationMember | None:
        try:
            return session.get(OrganizationMember, membership_id)
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchMembershipById. Error: %s", e)
            raise e

    def fetchOrganizationsByUserId(self, session: Session, user_id: UUID) -> list[tuple[Organization, OrganizationMember]]:
        """
        List the organizations a user belongs to, oldest membership first.

        Returns
        -------
        list[tuple[Organization, OrganizationMember]]
        """
        try:
            return (
                session.query(Organization, OrganizationMember)
                .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
                .filter(OrganizationMember.user_id == user_id)
                .order_by(OrganizationMember.joined_at)
                .all()
            )
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchOrganizationsByUserId. Error: %s", e)
            raise e

    def fetchMembersByOrganizationId(self, session: Session, organization_id: UUID) -> list[tuple[OrganizationMember, User]]:
        try:
            return (
                session.query(OrganizationMember, User)
                .join(User, User.id == OrganizationMember.user_id)
                .filter(OrganizationMember.organization_id == organization_id)
                .order_by(OrganizationMember.joined_at)
                .all()
            )
        except Exception as e:
            logger.error("Error in OrganizationDao.fetchMembersByOrganizationId. Error: %s", e)
            raise e

    def updateMembershipRole(self, session: Session, membership: OrganizationMember, role: OrganizationRole) -> OrganizationMember:
        try:
            membership.role = OrganizationRole(role)
            return membership
        except Exception as e:
            logger.error("Error in OrganizationDao.updateMembershipRole. Error: %s", e)
            raise e

    def deleteMembership(self, session: Session, membership: OrganizationMember) -> None:
        try:
            session.delete(membership)
        except Exception as e:
            logger.error("Error in OrganizationDao.deleteMembership. Error: %s", e)
            raise e

    def deleteMembershipsByOrganizationId(self, session: Session, organization_id: UUID) -> int:
        try:
            return (
                session.query(OrganizationMember)
                .filter(OrganizationMember.organization_id == organization_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error("Error in OrganizationDao.deleteMembershipsByOrganizationId. Error: %s", e)
            raise e
