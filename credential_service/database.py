"""Database configuration and session management."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from credential_service.config import Settings


# Base class for ORM models
class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


def create_db_engine(config: Settings) -> Engine:
    """
    Create the database engine with a bounded connection pool.

    Open connections are capped at db_pool_size + db_max_overflow, idle ones at
    db_pool_size, and every connection is recycled after db_pool_recycle_seconds.
    SQLite (used for local runs and tests) gets its own pool settings.
    """
    if config.database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in config.database_url or config.database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(config.database_url, **kwargs)

    return create_engine(
        config.database_url,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout_seconds,
        pool_recycle=config.db_pool_recycle_seconds,
        echo=False,
        isolation_level="READ COMMITTED",
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create the session factory used by the account store."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,  # Accounts are returned detached after commit
    )
