"""
Connection Engine (SQLAlchemy)

Purpose
-------
Centralizes database initialization for the application:
- Builds the SQLAlchemy Engine from environment-backed settings.
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.
- Exposes the session factory used by ``@transactional``.

Notes
-----
- The engine is not created at import time. The application lifespan calls
  ``build_engine(settings)`` and ``bind_engine(engine)`` on startup and
  ``dispose_engine()`` on shutdown, so tests can bind an in-memory database
  instead.
- All ORM models must inherit from `declarativeBase` to participate in schema reflection
  and enable ORM features.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.schema import MetaData

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------
# Metadata object: stores schema-level information about tables,
# constraints, indexes, etc. Shared across all models.
# --------------------------------------------------------------------
metadata = MetaData()
"""
Metadata object: Stores schema-level information about tables, constraints, indexes, etc. Shared across all models.
"""

# --------------------------------------------------------------------
# Declarative Base: root class for ORM models.
# --------------------------------------------------------------------
declarativeBase = declarative_base(metadata=metadata)
"""Declarative Base: Root class for ORM models.
All model classes should inherit from this to gain ORM features and automatic schema generation.
"""

# --------------------------------------------------------------------
# Session factory. Unbound until `bind_engine` runs.
# expire_on_commit=False keeps returned entities readable after the
# transactional wrapper closes the session.
# --------------------------------------------------------------------
SessionLocal = sessionmaker(expire_on_commit=False)
"""Session factory used by `@transactional`; bound to an engine at startup."""


def build_engine(settings, **engine_kwargs) -> Engine:
    """
    Create the Engine (connection pool + SQL execution entry point).

    Parameters
    ----------
    settings : Settings
        Application settings; `settings.database_url` is used.
    **engine_kwargs
        Extra keyword arguments for `create_engine` (pool tuning, SSL, ...).

    Returns
    -------
    Engine
    """
    kwargs = {"pool_pre_ping": True}
    kwargs.update(engine_kwargs)
    return create_engine(settings.database_url, **kwargs)


def bind_engine(engine: Engine) -> None:
    """Point the shared session factory at `engine`."""
    SessionLocal.configure(bind=engine)
    logger.info("Session factory bound to %s", engine.url.render_as_string(hide_password=True))


def create_tables(engine: Engine) -> None:
    """Create every table registered on `metadata` that does not exist yet."""
    # Entities register themselves on import
    import nova.database.entities  # noqa: F401

    metadata.create_all(engine)


def dispose_engine(engine: Engine) -> None:
    """Release pooled connections and unbind the session factory."""
    engine.dispose()
    SessionLocal.configure(bind=None)
