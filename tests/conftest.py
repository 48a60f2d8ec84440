"""Pytest configuration and shared fixtures.

Every test that touches the database gets its own in-memory SQLite engine
(single connection via ``StaticPool``) with all tables created, so tests
never see each other's rows.
"""

from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from accessgate.api.deps import get_current_actor, get_db
from accessgate.api.main import create_app
from accessgate.core.authz import Actor
from accessgate.db.session import init_db


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to a fresh in-memory database."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


class ActorOverride:
    """Stands in for the authentication layer; tests set ``actor`` directly."""

    def __init__(self):
        self.actor: Optional[Actor] = None

    def __call__(self) -> Optional[Actor]:
        return self.actor


@pytest.fixture
def current_actor():
    return ActorOverride()


@pytest.fixture
def client(db_session, current_actor):
    """API client sharing the test session, with the actor controlled by ``current_actor``."""
    app = create_app()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = current_actor
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
