import os
import sys
import pytest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure the project root (containing `core`, `api`, `main`) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import get_settings
from database import Base, get_db
import models  # noqa: F401
from main import app


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    current = get_settings()
    monkeypatch.setattr(current, "min_players", 2)
    monkeypatch.setattr(current, "max_write_retries", 5)
    monkeypatch.setattr(current, "conditional_writes", True)
    return current


@pytest.fixture()
def engine(tmp_path):
    # File-backed so separate sessions use separate connections, like real clients
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'rooms.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
