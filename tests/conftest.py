import os
import uuid

import pytest
from fastapi.testclient import TestClient

# Set test database before any imports
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from app.main import create_app
from app.config import get_settings
from app.services.room_store import RoomStore
from db.base import Base
from db.session import SessionLocal, engine


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create all tables before tests run, drop after all tests complete."""
    # Import models to ensure they are registered with Base
    from db.models import Message, Room, RoomContext, User  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Clean tables between tests to ensure isolation."""
    yield
    from db.models import Message, Room, RoomContext, User

    with SessionLocal() as db:
        db.query(Message).delete()
        db.query(RoomContext).delete()
        db.query(Room).delete()
        db.query(User).delete()
        db.commit()


@pytest.fixture(autouse=True)
def _configure_llm(monkeypatch, request):
    get_settings.cache_clear()
    if request.node.get_closest_marker("use_llm"):
        yield
        return
    monkeypatch.setenv("LLM_ENABLED", "false")
    monkeypatch.setenv("EMBEDDINGS_ENABLED", "false")
    get_settings.cache_clear()
    yield


@pytest.fixture
def store() -> RoomStore:
    return RoomStore(SessionLocal)


@pytest.fixture
def user(store):
    address = "0x" + uuid.uuid4().hex * 2
    return store.create_user(sui_address=address, name="tester")


@pytest.fixture
def room(store, user):
    return store.create_room(user_id=user.id, title="Portfolio chat")


@pytest.fixture
def client():
    app = create_app()
    with TestClient(app) as client:
        yield client
