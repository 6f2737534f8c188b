"""
The `database` package is responsible for all interactions with the application's database.
It provides configuration, entity definitions, CRUD operations, and the service
functions that the API layer calls.

Contents:
    - config:
        Application settings and the SQLAlchemy engine/session bootstrap.

    - entities:
        SQLAlchemy entity models representing the database tables and schemas.

    - daos:
        Data Access Objects (DAOs) providing CRUD operations for the entities.

    - core:
        Transactional service functions (access checks, conversation store,
        organization/group administration, documents) that connect the
        routers with the DAOs.

    - helpers:
        Utility helpers to manage database transactions and sessions.
"""
