"""Engine and session factory for AccessGate."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from accessgate.core.config import get_settings
from accessgate.db.base import Base


def build_engine(database_url: str):
    """Create an engine, keeping in-memory SQLite on a single connection."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create all tables. Used for local runs and tests; not a migration tool."""
    # Import models so they register on Base.metadata
    import accessgate.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
