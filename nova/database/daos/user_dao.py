"""
User DAO

Purpose
-------
Thin data-access layer for the `User` ORM entity: create users and look
them up by primary key, identity-provider subject or email.

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller.
- Methods log the failure and re-raise; transaction policy stays in the
  service layer.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session
from nova.database.entities.user import User

logger = logging.getLogger(__name__)


class UserDao:
    """
    Data Access Object (DAO) for managing User entities.
    """

    def createUser(self, session: Session, user: User) -> User:
        """
        Stage a new user record.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user : User
            User entity instance to be added.

        Returns
        -------
        User
            The staged entity (flushed, so its id is usable immediately).
        """
        try:
            session.add(user)
            session.flush()
            return user
        except Exception as e:
            logger.error("Error in UserDao.createUser. Error: %s", e)
            raise e

    def fetchUserById(self, session: Session, user_id: UUID) -> User | None:
        try:
            return session.get(User, user_id)
        except Exception as e:
            logger.error("Error in UserDao.fetchUserById. Error: %s", e)
            raise e

    def fetchUserByExternalId(self, session: Session, external_id: str) -> User | None:
        """
        Fetch the user linked to an identity-provider subject.

        Returns
        -------
        User | None
            The user, or None when the subject has not been onboarded yet.
        """
        try:
            return session.query(User).filter(User.external_id == external_id).one_or_none()
        except Exception as e:
            logger.error("Error in UserDao.fetchUserByExternalId. Error: %s", e)
            raise e

    def fetchUserByEmail(self, session: Session, email: str) -> list[User]:
        try:
            return session.query(User).filter(User.email == email).all()
        except Exception as e:
            logger.error("Error in UserDao.fetchUserByEmail. Error: %s", e)
            raise e
