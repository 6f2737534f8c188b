"""
Entities Package — SQLAlchemy 2.0 ORM Models (UUID + UTC)
=========================================================

The `entities` package defines the ORM models of the application, mapping
database tables to Python classes using SQLAlchemy 2.0-typed mappings.
These classes form the persistence backbone and are consumed by DAOs
(`daos` package).

Tech Stack & Conventions
------------------------
- PostgreSQL in production (SQLite in tests) through the generic `Uuid` type
- Timezone-aware timestamps (UTC)
- SQLAlchemy 2.0 style `Mapped[...]` + `mapped_column(...)`
- Enumerations stored as text (`native_enum=False`)

Contents
--------
- User: local link to an identity-provider subject
- Organization / OrganizationMember (roles: admin, manager, member, viewer)
- Group / GroupMember: knowledge-scoping unit and explicit access grants
- Conversation: user-owned thread bound to one group, title set once
- Message: append-only turns, strictly increasing `created_at`
- Document / DocumentGroup: uploaded files, embedding status, group assignment

Importing this package registers every table on the shared `metadata`.
"""

from nova.database.entities.user import User
from nova.database.entities.organization import Organization, OrganizationMember, OrganizationRole
from nova.database.entities.group import Group, GroupMember
from nova.database.entities.conversations import Conversation
from nova.database.entities.messages import Message, MessageRole
from nova.database.entities.document import Document, DocumentGroup, EmbeddingStatus

__all__ = [
    "User",
    "Organization",
    "OrganizationMember",
    "OrganizationRole",
    "Group",
    "GroupMember",
    "Conversation",
    "Message",
    "MessageRole",
    "Document",
    "DocumentGroup",
    "EmbeddingStatus",
]
