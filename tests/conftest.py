import os
import tempfile
import uuid
from datetime import date

import pytest

# Must be set before the app modules read their configuration
_db_dir = tempfile.mkdtemp(prefix="finance-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient  # noqa: E402

from main import app, get_today  # noqa: E402

TODAY = date(2025, 3, 10)  # a Monday
PASSWORD = "secret123"


@pytest.fixture(scope="session")
def client():
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Register a fresh user and return ``(email, token)``."""

    def _signup(name="Ana"):
        email = f"user-{uuid.uuid4().hex[:12]}@mail.com"
        r = client.post("/auth/register", json={"name": name, "email": email, "password": PASSWORD})
        assert r.status_code == 200, r.text
        r = client.post("/auth/login", data={"username": email, "password": PASSWORD})
        assert r.status_code == 200, r.text
        return email, r.json()["access_token"]

    return _signup


@pytest.fixture
def headers(signup):
    _, token = signup()
    return {"Authorization": f"Bearer {token}"}
