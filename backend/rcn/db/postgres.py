"""
PostgreSQL connection via SQLAlchemy with psycopg3.

System of record when STORAGE_BACKEND=sql.
"""

import logging

from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, scoped_session, declarative_base

from rcn.config import config

logger = logging.getLogger("rcn.db")

# SQLAlchemy base for model declarations
Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Engine and session factory (initialized lazily)
_engine = None
_session_factory = None


def sqlalchemy_url(url: str = None) -> str:
    """Configured URL with the psycopg3 driver selected."""
    return (url or config.get_database_url()).replace("postgresql://", "postgresql+psycopg://", 1)


def get_engine(url: str = None):
    """Get or create the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            sqlalchemy_url(url),
            echo=config.DEBUG,  # Log SQL in debug mode
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=300,  # Recycle connections every 5 minutes
            pool_reset_on_return="rollback",
        )

        @event.listens_for(_engine, "checkout")
        def checkout_listener(dbapi_conn, connection_record, connection_proxy):
            """Ensure connection is in clean state when checked out."""
            if _engine.dialect.name != "postgresql":
                return
            cursor = dbapi_conn.cursor()
            try:
                cursor.execute("ROLLBACK")
            finally:
                cursor.close()

    return _engine


def get_session_factory():
    """Thread-local session registry bound to the engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = scoped_session(
            sessionmaker(bind=get_engine(), autocommit=False, autoflush=False, expire_on_commit=False)
        )
    return _session_factory


def get_db_session():
    """Get a scoped database session.

    The session is cleaned up at the end of each request via close_db_session().
    """
    return get_session_factory()()


def init_db(engine=None):
    """Create tables (development/testing; production uses Alembic)."""
    # Import models so they register with Base.metadata
    from rcn import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def close_db_session(exception=None):
    """Remove the current session (call at end of request).

    Always rollback to ensure clean state for next request,
    then remove the session from the registry.
    """
    if _session_factory is None:
        return
    try:
        _session_factory.rollback()
    except SQLAlchemyError as e:
        logger.warning("Rollback on teardown failed: %s", e)
    finally:
        _session_factory.remove()


def reset_engine():
    """Dispose the engine and forget the session registry (tests, reconfiguration)."""
    global _engine, _session_factory
    if _session_factory is not None:
        _session_factory.remove()
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


# Alias for convenience
db = Base
