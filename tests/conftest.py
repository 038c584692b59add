import os
import tempfile

# Configure the app before it is imported: in-memory database, throwaway
# media directory, in-process fan-out.
MEDIA_DIR = tempfile.mkdtemp(prefix="chatrooms-media-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_ROOT"] = MEDIA_DIR
os.environ["APP_URL"] = "http://testserver"
os.environ["APP_ENV"] = "testing"
os.environ["PUB_SUB_SERVICE"] = "local"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from chatrooms.core.database import Base, SessionLocal, engine
from chatrooms.main import app
from chatrooms.models import orm  # noqa: F401


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts from empty tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client():
    """A test client for the FastAPI app, with startup/shutdown events run."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _register(client, name, email=None, password="secret-password"):
    email = email or f"{name.lower()}@example.com"
    response = client.post("/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "id": body["user"]["id"],
        "name": name,
        "token": body["access_token"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }


@pytest.fixture()
def make_user(client):
    """Register another user: make_user("Dave") -> {id, name, token, headers}."""
    return lambda name, **kwargs: _register(client, name, **kwargs)


@pytest.fixture()
def alice(client):
    return _register(client, "Alice")


@pytest.fixture()
def bob(client):
    return _register(client, "Bob")


@pytest.fixture()
def carol(client):
    return _register(client, "Carol")


@pytest.fixture()
def chatroom(client, alice):
    response = client.post(
        "/chatrooms", json={"name": "General Chat", "max_members": 2}, headers=alice["headers"]
    )
    assert response.status_code == 201, response.text
    return response.json()
