"""Database initialization script."""

from sqlalchemy import Engine

from credential_service.config import Settings, settings
from credential_service.database import Base, create_db_engine
from credential_service.models import Account  # noqa: F401  registers the table


def create_tables(engine: Engine) -> None:
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")


def init_db(config: Settings | None = None) -> None:
    """Initialize the database schema."""
    engine = create_db_engine(config or settings)
    try:
        create_tables(engine)
    finally:
        engine.dispose()


if __name__ == "__main__":
    init_db()
