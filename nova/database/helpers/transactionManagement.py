"""
Transaction management for Nova services
========================================

Every service function in ``nova.database.core`` is wrapped in
``@transactional``. The decorator opens a session (or joins the one already
active in the current context), commits when the outermost call returns and
rolls back when it raises. Nested calls, for example ``complete_exchange``
calling ``append_message`` and ``set_title_if_unset``, therefore commit or
fail together.

The active session lives in a ``contextvars.ContextVar``:

- ``db_session_context``: the session of the running transaction, or None

Service functions are synchronous. Async callers (route handlers, the
streaming orchestrator) run them through ``starlette.concurrency.run_in_threadpool``;
each worker thread starts from a copy of the caller's context, so a session
never leaks between concurrent requests.
"""

from functools import wraps
import contextvars
from nova.database.config.connection_engine import SessionLocal

# --------------------------------------------------------------------
# Context variable to store the current database session.
# --------------------------------------------------------------------
db_session_context = contextvars.ContextVar("db_session_context", default=None)
"""Context variable storing the active SQLAlchemy session."""


def transactional(func):
    """
    Decorator to wrap functions in a managed SQLAlchemy transaction.

    Ensures that:
    - If a session already exists in context, it is reused.
    - Otherwise, a new session is created, committed, and closed.
    - On errors, the session is rolled back and closed.

    Parameters
    ----------
    func : callable
        The function to wrap. It must accept a `session` keyword argument.

    Returns
    -------
    callable
        The wrapped function, executed within a database transaction.

    Example
    -------
    >>> @transactional
    ... def create_group(name: str, session=None):
    ...     session.add(Group(...))
    ...
    >>> create_group("Legal")
    """
    @wraps(func)
    def wrap_func(*args, **kwargs):
        # Try to get an existing session from context
        session = db_session_context.get()
        if session:
            return func(*args, session=session, **kwargs)

        session = SessionLocal()
        token = db_session_context.set(session)

        try:
            result = func(*args, session=session, **kwargs)
            session.flush()   # Push pending changes
            session.commit()  # Commit transaction
        except Exception:
            session.rollback()  # Rollback on failure
            raise
        finally:
            session.close()
            db_session_context.reset(token)

        return result

    return wrap_func
