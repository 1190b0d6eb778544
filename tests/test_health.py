"""Smoke tests for the health endpoints."""
from __future__ import annotations

from business_connect import create_app


def test_health_endpoint() -> None:
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    client = app.test_client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json == {"status": "ok"}


def test_db_health_endpoint(client) -> None:
    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}
