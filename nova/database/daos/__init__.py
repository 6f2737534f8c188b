"""
DAOs Package — Data Access Layer (SQLAlchemy 2.0)
=================================================

The `daos` package provides the Data Access Layer for the application.
It encapsulates all interactions with SQLAlchemy ORM entities, providing
clean CRUD APIs for the service layer while hiding direct query details.

Conventions
-----------
- SQLAlchemy 2.0 typed mappings (Mapped[...] / mapped_column)
- Session lifecycle (open/commit/rollback) is handled by callers
- DAOs surface exceptions so upper layers decide error policy

Contents
--------
- UserDao: users by id, identity-provider subject or email
- OrganizationDao: organizations and role-bearing memberships
- GroupDao: groups and explicit group memberships
- ConversationDao: conversations, joined with group and organization for listings
- MessagesDao: append-only messages in chronological order
- DocumentDao: documents, group assignments and embedding status
"""
