import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.database.base import Base
from shared.database.session import COLLECTIONS  # noqa: F401  registers the models
from shared.database.store import SQLAlchemyStore


@pytest.fixture
def engine():
    # Set up SQLite in-memory, shared by every session of the test
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
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return SQLAlchemyStore(session_factory)
