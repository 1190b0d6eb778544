"""Tests for creating business profiles."""
from __future__ import annotations

from business_connect.models import Activity, Analytics


def test_create_business_success_201(client, owner) -> None:
    user, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Bean There",
            "contact": {"phone": "555-0100", "email": "hello@beanthere.example"},
            "location": "12 Roast Ave",
            "pageName": "Bean-There",
            "services": ["Coffee", "Pastries"],
            "theme": "light",
            "category": "Coffee & Beverages",
        },
        headers=headers,
    )

    assert response.status_code == 201
    data = response.get_json()
    assert data["ownerId"] == user["id"]
    assert data["pageName"] == "Bean-There"
    assert data["services"] == ["Coffee", "Pastries"]
    assert data["products"] == {"Coffee": [], "Pastries": []}
    assert data["rating"] == 0
    assert data["reviewCount"] == 0
    assert data["icon"] == ""
    assert data["customIcon"] is None

    analytics = Analytics.query.filter_by(business_id=data["id"]).one()
    assert analytics.profile_views == 0
    assert analytics.inquiries == 0
    activity = Activity.query.filter_by(business_id=data["id"]).one()
    assert activity.type == "business_create"
    assert activity.entity_kind == "Business"
    assert activity.entity_id == str(data["id"])


def test_create_business_defaults_to_no_services(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Plain",
            "contact": {"phone": "1", "email": "p@example.com"},
            "location": "Somewhere",
            "pageName": "plain",
        },
        headers=headers,
    )

    assert response.status_code == 201
    assert response.get_json()["services"] == []
    assert response.get_json()["products"] == {}


def test_create_business_requires_owner_role_403(client, customer) -> None:
    _, headers = customer

    response = client.post(
        "/api/businesses",
        json={
            "name": "Nope",
            "contact": {"phone": "1", "email": "n@example.com"},
            "location": "Here",
            "pageName": "nope",
        },
        headers=headers,
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "forbidden"


def test_create_business_requires_auth_401(client) -> None:
    response = client.post("/api/businesses", json={"name": "Anon"})

    assert response.status_code == 401


def test_create_business_missing_contact_400(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={"name": "No Contact", "contact": {"phone": "1"}, "location": "Here", "pageName": "no-contact"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_create_business_rejects_more_than_five_services(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Too Many",
            "contact": {"phone": "1", "email": "t@example.com"},
            "location": "Here",
            "pageName": "too-many",
            "services": ["a", "b", "c", "d", "e", "f"],
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_services"


def test_create_business_page_name_is_unique_case_insensitively(client, owner, create_business) -> None:
    _, headers = owner
    create_business(headers, pageName="bean-there")

    response = client.post(
        "/api/businesses",
        json={
            "name": "Copycat",
            "contact": {"phone": "1", "email": "c@example.com"},
            "location": "Here",
            "pageName": "BEAN-THERE",
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "page_name_taken"


def test_create_business_rejects_numeric_page_name(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Digits",
            "contact": {"phone": "1", "email": "d@example.com"},
            "location": "Here",
            "pageName": "12345",
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_page_name"


def test_create_business_icon_and_custom_icon_are_exclusive(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Icons",
            "contact": {"phone": "1", "email": "i@example.com"},
            "location": "Here",
            "pageName": "icons",
            "icon": "coffee",
            "customIcon": "https://test-bucket.s3.amazonaws.com/business_icons/abc.png",
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_icon"


def test_create_business_rejects_unknown_category(client, owner) -> None:
    _, headers = owner

    response = client.post(
        "/api/businesses",
        json={
            "name": "Odd",
            "contact": {"phone": "1", "email": "o@example.com"},
            "location": "Here",
            "pageName": "odd",
            "category": "Space Tourism",
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_category"


def test_create_business_rejects_non_object_body(client, owner) -> None:
    _, headers = owner

    response = client.post("/api/businesses", json=["x"], headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_create_business_services_cap_comes_from_config(app, client, owner) -> None:
    _, headers = owner
    app.config["MAX_SERVICES"] = 2

    response = client.post(
        "/api/businesses",
        json={
            "name": "Capped",
            "contact": {"phone": "1", "email": "c@example.com"},
            "location": "Here",
            "pageName": "capped",
            "services": ["a", "b", "c"],
        },
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_services"
