import io
import os

import mongomock
import pytest

# Ensure JWT_SECRET is set for tests
os.environ["JWT_SECRET"] = "test_secret"

from gatherguru.config import Settings
from gatherguru.gateway.server import create_app
from gatherguru.uploads import LocalUploadAdapter

ORIGIN = "http://localhost:5173"
PASSWORD = "password123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret="test_secret",
        upload_dir=str(tmp_path / "uploads"),
        allowed_origins=[ORIGIN],
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["gatherguru_test"]


@pytest.fixture
def app(settings, db):
    app = create_app(settings, db=db, upload_adapter=LocalUploadAdapter(settings.upload_dir))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def png(name="banner.png", size=64):
    """A small multipart file tuple that passes as an image."""
    return (io.BytesIO(b"\x89PNG\r\n\x1a\n" + b"\0" * size), name, "image/png")


@pytest.fixture
def login_as(app):
    """
    Register an account through the API and return a test client holding
    its session cookie.
    """

    prefixes = {"user": "/api", "organizer": "/api/organizer", "admin": "/api/admin"}

    def _login(role="organizer", email=None, name="Test Account"):
        c = app.test_client()
        email = email or f"{role}@example.com"
        prefix = prefixes[role]

        r = c.post(f"{prefix}/register", json={"email": email, "password": PASSWORD, "name": name})
        assert r.status_code == 201, r.get_json()

        r = c.post(f"{prefix}/login", json={"email": email, "password": PASSWORD})
        assert r.status_code == 200, r.get_json()
        return c

    return _login


@pytest.fixture
def draft_event(login_as):
    """An organizer client plus one of its draft events."""
    organizer = login_as("organizer")
    r = organizer.post("/api/events", json={
        "title": "Jazz Night",
        "description": "Live jazz downtown",
        "category": "music",
        "start_date": "2030-05-01T19:00:00Z",
        "end_date": "2030-05-01T23:00:00Z",
        "location": "Blue Room, Springfield",
    })
    assert r.status_code == 201, r.get_json()
    return organizer, r.get_json()["event"]
