"""
Database connection and session management.

This module provides SQLAlchemy engine configuration for the relational
team membership backend (teams and user_teams tables). Engines are built
from AppSettings at startup; nothing here is created at import time.
"""

from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


# Load environment variables from .env file
# Look for .env in backend directory (parent of src)
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(dotenv_path=env_path)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE on user_teams.team_id needs this on SQLite
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite (used by tests and local experiments) gets a StaticPool so that
    an in-memory database is shared across threads; PostgreSQL gets a
    bounded connection pool.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured Engine
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
            echo=False,
            future=True
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,    # Verify connections before checkout
        pool_recycle=3600,
        echo=False,
        future=True
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create the session factory bound to an engine.

    Args:
        engine: SQLAlchemy engine

    Returns:
        sessionmaker producing Session objects
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        future=True
    )


def init_db(engine: Engine) -> None:
    """
    Initialize database tables.

    This should only be called during initial setup or testing.
    For production, use Alembic migrations instead.
    """
    from backend.src.models import Base
    Base.metadata.create_all(bind=engine)
