"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Services never create engines
themselves; they receive a session factory (SessionLocal in
production, a test factory in tests) and open short-lived
sessions from it.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase

from residence_ledger.config import get_settings

settings = get_settings()

# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles cases where the database restarted or a
# connection went stale.
_connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# --- Session Factory ---
# autocommit=False: the unit of work decides when changes are
# saved, so a settlement entry and the accrual update it pairs
# with land together or not at all.
# autoflush=False: SQL is only sent on explicit flush/commit.
# expire_on_commit=False: entries and accounts returned from a
# closed unit of work stay readable.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# --- Base Model Class ---
class Base(DeclarativeBase):
    pass


def get_session_factory() -> sessionmaker:
    """
    Provide the session factory services are built on.

    FastAPI resolves this as a dependency; tests override it
    with a factory bound to the test database.
    """
    return SessionLocal


@contextmanager
def use_session(session_factory: sessionmaker, session: Session | None = None):
    """
    Yield the caller's session, or a fresh one committed on exit.

    When a session is passed in, the caller owns the transaction
    and nothing is committed here. Otherwise the new session
    commits on success, rolls back on any exception, and is
    always closed.
    """
    if session is not None:
        yield session
        return

    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create all tables directly (local development only)."""
    import residence_ledger.models  # noqa: F401  registers every model

    Base.metadata.create_all(bind=engine)
