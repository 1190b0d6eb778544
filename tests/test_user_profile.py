"""Tests for the user profile endpoints."""
from __future__ import annotations

from business_connect.models import Activity


def test_get_profile_returns_defaults(client, owner) -> None:
    user, headers = owner

    response = client.get("/api/users/profile", headers=headers)

    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] == user["id"]
    assert body["preferences"] == {
        "theme": "system",
        "notifications": {"email": True, "push": False, "sms": False},
    }
    assert "passwordHash" not in body
    assert "password_hash" not in body


def test_update_profile_merges_preferences(client, owner) -> None:
    user, headers = owner

    response = client.put(
        "/api/users/profile",
        json={
            "name": "Olive O.",
            "username": "Olive",
            "location": "Newark",
            "preferences": {"theme": "dark", "notifications": {"push": True}},
        },
        headers=headers,
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["name"] == "Olive O."
    assert body["username"] == "olive"
    assert body["location"] == "Newark"
    assert body["preferences"] == {
        "theme": "dark",
        "notifications": {"email": True, "push": True, "sms": False},
    }
    assert Activity.query.filter_by(user_id=user["id"], type="profile_update").count() == 1


def test_update_profile_rejects_unknown_theme(client, owner) -> None:
    _, headers = owner

    response = client.put("/api/users/profile", json={"preferences": {"theme": "neon"}}, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_theme"


def test_update_profile_username_taken(client, owner, register) -> None:
    register("taken@example.com", name="Tara", username="tara")
    _, headers = owner

    response = client.put("/api/users/profile", json={"username": "TARA"}, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "username_taken"


def test_update_profile_blank_name_400(client, owner) -> None:
    _, headers = owner

    response = client.put("/api/users/profile", json={"name": ""}, headers=headers)

    assert response.status_code == 400


def test_update_bio(client, owner) -> None:
    _, headers = owner

    response = client.put("/api/users/profile/bio", json={"bio": "Roaster since 2009"}, headers=headers)

    assert response.status_code == 200
    assert response.get_json() == {"bio": "Roaster since 2009"}
    assert client.get("/api/users/profile", headers=headers).get_json()["bio"] == "Roaster since 2009"


def test_update_bio_requires_field(client, owner) -> None:
    _, headers = owner

    response = client.put("/api/users/profile/bio", json={}, headers=headers)

    assert response.status_code == 400


def test_update_personal_info(client, owner) -> None:
    _, headers = owner

    response = client.put(
        "/api/users/profile/personal-info",
        json={"email": "New@Example.com", "phone": "555-0199", "website": "https://olive.example"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "email": "new@example.com",
        "phone": "555-0199",
        "location": "",
        "website": "https://olive.example",
    }


def test_update_personal_info_email_in_use(client, owner, customer) -> None:
    _, headers = owner

    response = client.put(
        "/api/users/profile/personal-info", json={"email": "casey@example.com"}, headers=headers
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "email_in_use"


def test_profile_requires_auth(client) -> None:
    response = client.put("/api/users/profile", json={"name": "Nobody"})

    assert response.status_code == 401
