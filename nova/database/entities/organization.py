"""
Organization ORM Models
=======================

``Organization`` is the tenant boundary: groups, documents and memberships
all belong to exactly one organization. ``OrganizationMember`` links a user to
an organization with a role.

Key features
~~~~~~~~~~~~
- UUID primary keys
- ``OrganizationRole`` enum stored as text (``admin``, ``manager``, ``member``, ``viewer``)
- At most one membership row per (user, organization)
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import TEXT, DateTime, Enum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import enum
import uuid
from datetime import datetime, timezone


class OrganizationRole(str, enum.Enum):
    """Role a user holds inside an organization."""

    admin = "admin"
    manager = "manager"
    member = "member"
    viewer = "viewer"


class Organization(declarativeBase):
    """
    ORM model for the `organization` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    name : str
        Organization name.
    description : str | None
        Free-text description.
    created_at, updated_at : datetime
        Row timestamps (UTC).
    """

    __tablename__ = "organization"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    description: Mapped[str] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, name: str, description: str | None = None):
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.name = name
        self.description = description
        self.created_at = now
        self.updated_at = now

    def __str__(self) -> str:
        return f"Organization: id:{self.id}, name: {self.name}"


class OrganizationMember(declarativeBase):
    """
    ORM model for the `organization_member` table.

    Attributes
    ----------
    id : UUID
        Primary key. Referenced by the member-management endpoints.
    user_id : UUID
        Foreign key to `app_user`.
    organization_id : UUID
        Foreign key to `organization`.
    role : OrganizationRole
        Role inside the organization.
    joined_at : datetime
        When the membership was created (UTC).
    """

    __tablename__ = "organization_member"
    __table_args__ = (UniqueConstraint("user_id", "organization_id", name="uq_organization_member"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    organization_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("organization.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[OrganizationRole] = mapped_column(
        Enum(OrganizationRole, native_enum=False, length=16), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, user_id: UUID, organization_id: UUID, role: OrganizationRole = OrganizationRole.member):
        self.id = uuid.uuid4()
        self.user_id = user_id
        self.organization_id = organization_id
        self.role = OrganizationRole(role)
        self.joined_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"OrganizationMember: user:{self.user_id}, organization: {self.organization_id}, role: {self.role.value}"
