"""pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from business_connect import create_app, media  # noqa: E402
from business_connect.extensions import db  # noqa: E402


class TestConfig:
    TESTING = True
    ENV = "testing"
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    AUTH_COOKIE_SECURE = False
    LIST_VIEW_POLICY = "per_item"
    AWS_S3_BUCKET = "test-bucket"


class FakeS3Client:
    def __init__(self) -> None:
        self.deleted: list[dict[str, str]] = []

    def delete_object(self, Bucket: str, Key: str) -> dict:
        self.deleted.append({"Bucket": Bucket, "Key": Key})
        return {}


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_s3(monkeypatch):
    fake = FakeS3Client()
    monkeypatch.setattr(media.boto3, "client", lambda service_name, *args, **kwargs: fake)
    return fake


@pytest.fixture
def register(client):
    """Register an account through the API; returns ``(user, auth_headers)``."""

    def _register(
        email: str = "owner@example.com",
        *,
        name: str = "Olive Owner",
        role: str = "business_owner",
        password: str = "Secret123!",
        username: str | None = None,
    ):
        payload = {"name": name, "email": email, "password": password, "role": role}
        if username:
            payload["username"] = username
        response = client.post("/api/users/register", json=payload)
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register


@pytest.fixture
def owner(register):
    return register()


@pytest.fixture
def customer(register):
    return register("casey@example.com", name="Casey Customer", role="user")


def _business_payload(**overrides) -> dict:
    payload = {
        "name": "Bean There",
        "contact": {"phone": "555-0100", "email": "hello@beanthere.example"},
        "location": "12 Roast Ave",
        "pageName": "bean-there",
        "services": ["Coffee"],
        "category": "Coffee & Beverages",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_business(client):
    def _create(headers: dict[str, str], **overrides) -> dict:
        response = client.post("/api/businesses", json=_business_payload(**overrides), headers=headers)
        assert response.status_code == 201, response.get_json()
        return response.get_json()

    return _create


@pytest.fixture
def business(owner, create_business):
    _, headers = owner
    return create_business(headers)
