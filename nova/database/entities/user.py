"""
User ORM Model
==============

The ``User`` ORM model represents a person known to the application. It maps to the
``app_user`` table. Credentials live with the external identity provider; the
local row only links that identity (``external_id``) to memberships, documents
and conversations.

Key features
~~~~~~~~~~~~
- UUID primary key (``id``)
- Immutable, unique ``external_id`` (the identity provider's subject)
- Profile fields (``email``, ``name``, ``avatar_url``)
- Timezone-aware ``created_at`` / ``updated_at`` timestamps (UTC)
"""

from nova.database.config.connection_engine import declarativeBase
from sqlalchemy import VARCHAR, TEXT, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
import uuid
from datetime import datetime, timezone


class User(declarativeBase):
    """
    ORM model for the `app_user` table.

    Attributes
    ----------
    id : UUID
        Primary key. Unique identifier for the user.
    external_id : str
        Subject issued by the identity provider. Unique, never changes.
    email : str
        Email address of the user.
    name : str | None
        Display name.
    avatar_url : str | None
        Profile picture URL reported by the identity provider.
    created_at, updated_at : datetime
        Row timestamps (UTC).
    """

    __tablename__ = "app_user"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    """Primary key. UUID of the user."""

    external_id: Mapped[str] = mapped_column(VARCHAR(255), nullable=False, unique=True)
    """Identity provider subject (unique)."""

    email: Mapped[str] = mapped_column(VARCHAR(255), nullable=False)
    """Email address of the user (max length 255)."""

    name: Mapped[str] = mapped_column(TEXT, nullable=True)

    avatar_url: Mapped[str] = mapped_column(TEXT, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, external_id: str, email: str, name: str | None = None, avatar_url: str | None = None):
        """
        Initialize a new User object.

        Parameters
        ----------
        external_id : str
            Identity provider subject.
        email : str
            Email address of the user.
        name : str | None
            Display name.
        avatar_url : str | None
            Profile picture URL.
        """
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.external_id = external_id
        self.email = email
        self.name = name
        self.avatar_url = avatar_url
        self.created_at = now
        self.updated_at = now

    def __str__(self) -> str:
        return f"User: id:{self.id}, email: {self.email}, external_id: {self.external_id}"
