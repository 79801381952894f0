"""Shared fixtures: an in-memory database, seeded users and a test client."""
import os
import tempfile

os.environ.setdefault("HOSTEL_CHAT_DATABASE_URL", "sqlite://")
os.environ.setdefault("HOSTEL_CHAT_LOG_FILE", os.path.join(tempfile.gettempdir(), "hostel_chat_tests.log"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hostel_chat.server import store  # noqa: E402
from hostel_chat.server.database import Base, build_engine, build_session_factory  # noqa: E402
from hostel_chat.server.main import create_app  # noqa: E402


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
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
def users(db):
    """alice (1) is a guest, bob (2) a host, carol (3) another guest."""
    return (
        store.create_user(db, "alice", "alice@example.com", "guest"),
        store.create_user(db, "bob", "bob@example.com", "host"),
        store.create_user(db, "carol", None, "guest"),
    )


@pytest.fixture
def app(engine):
    return create_app(engine)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
