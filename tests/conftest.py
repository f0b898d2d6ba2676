import os

# Must be set before the service config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("KAFKA_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from shared.database import build_session_factory
from services.inventory_service.models import Base
from services.inventory_service.repository import InventoryRepository
from tests.helpers import FakePublisher, InMemoryRepository


@pytest.fixture
def memory_repo():
    return InMemoryRepository()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return InventoryRepository(db)
