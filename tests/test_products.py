"""Tests for the per-service product catalog endpoints."""
from __future__ import annotations

from business_connect.extensions import db
from business_connect.models import Activity, Business


def _add(client, business_id, headers, product, service="Coffee"):
    return client.post(
        f"/api/businesses/{business_id}/products",
        json={"service": service, "product": product},
        headers=headers,
    )


def test_add_product_fills_defaults(client, owner, business) -> None:
    _, headers = owner

    response = _add(client, business["id"], headers, {"name": "Latte", "price": 4.5})

    assert response.status_code == 201
    products = response.get_json()["products"]["Coffee"]
    assert len(products) == 1
    latte = products[0]
    assert latte["name"] == "Latte"
    assert latte["price"] == 4.5
    assert latte["rating"] == 0
    assert latte["sales"] == {"quantity": 0, "revenue": 0}
    assert latte["inStock"] is True
    assert latte["id"].startswith("p")

    activity = Activity.query.filter_by(type="product_add").one()
    assert activity.entity_kind == "Product"
    assert activity.entity_id == latte["id"]


def test_add_product_ignores_client_rating_and_sales(client, owner, business) -> None:
    _, headers = owner

    response = _add(
        client,
        business["id"],
        headers,
        {"name": "Latte", "price": 4.5, "rating": 5, "sales": {"quantity": 99, "revenue": 400}},
    )

    latte = response.get_json()["products"]["Coffee"][0]
    assert latte["rating"] == 0
    assert latte["sales"] == {"quantity": 0, "revenue": 0}


def test_product_add_update_delete_round_trip(client, owner, business) -> None:
    _, headers = owner
    base = f"/api/businesses/{business['id']}"

    added = _add(client, business["id"], headers, {"id": "latte", "name": "Latte", "price": 4.5})
    assert added.status_code == 201
    assert client.get(base, headers=headers).get_json()["products"]["Coffee"][0]["id"] == "latte"

    updated = client.put(
        f"{base}/products/latte",
        json={"service": "Coffee", "product": {"name": "Oat Latte", "price": 5, "inStock": False}},
        headers=headers,
    )
    assert updated.status_code == 200
    product = client.get(base, headers=headers).get_json()["products"]["Coffee"][0]
    assert product["name"] == "Oat Latte"
    assert product["price"] == 5
    assert product["inStock"] is False

    deleted = client.delete(f"{base}/products/latte", json={"service": "Coffee"}, headers=headers)
    assert deleted.status_code == 200
    assert client.get(base, headers=headers).get_json()["products"]["Coffee"] == []

    again = client.delete(f"{base}/products/latte", json={"service": "Coffee"}, headers=headers)
    assert again.status_code == 404
    assert again.get_json()["error"] == "product_not_found"


def test_update_product_preserves_rating_and_sales(client, owner, business) -> None:
    _, headers = owner
    _add(client, business["id"], headers, {"id": "latte", "name": "Latte", "price": 4.5})

    stored = db.session.get(Business, business["id"])
    products = {"Coffee": [dict(stored.products["Coffee"][0], rating=4.5, sales={"quantity": 3, "revenue": 13.5})]}
    stored.products = products
    db.session.commit()

    response = client.put(
        f"/api/businesses/{business['id']}/products/latte",
        json={"service": "Coffee", "product": {"name": "Latte", "price": 5, "rating": 1}},
        headers=headers,
    )

    product = response.get_json()["products"]["Coffee"][0]
    assert product["price"] == 5
    assert product["rating"] == 4.5
    assert product["sales"] == {"quantity": 3, "revenue": 13.5}


def test_add_product_unknown_service_400(client, owner, business) -> None:
    _, headers = owner

    response = _add(client, business["id"], headers, {"name": "Scone", "price": 3}, service="Bakery")

    assert response.status_code == 400
    assert response.get_json()["error"] == "service_not_found"


def test_add_product_missing_price_400(client, owner, business) -> None:
    _, headers = owner

    response = _add(client, business["id"], headers, {"name": "Latte"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_add_product_rejects_non_positive_price(client, owner, business) -> None:
    _, headers = owner

    response = _add(client, business["id"], headers, {"name": "Latte", "price": 0})

    assert response.status_code == 400


def test_add_product_duplicate_id_400(client, owner, business) -> None:
    _, headers = owner
    _add(client, business["id"], headers, {"id": "latte", "name": "Latte", "price": 4.5})

    response = _add(client, business["id"], headers, {"id": "latte", "name": "Other", "price": 2})

    assert response.status_code == 400
    assert response.get_json()["error"] == "duplicate_product_id"


def test_add_product_generated_ids_are_unique(client, owner, business) -> None:
    _, headers = owner

    for name in ("Latte", "Mocha", "Flat White"):
        _add(client, business["id"], headers, {"name": name, "price": 4})

    products = client.get(f"/api/businesses/{business['id']}", headers=headers).get_json()["products"]
    ids = [item["id"] for item in products["Coffee"]]
    assert len(set(ids)) == 3


def test_update_product_unknown_id_404(client, owner, business) -> None:
    _, headers = owner

    response = client.put(
        f"/api/businesses/{business['id']}/products/missing",
        json={"service": "Coffee", "product": {"name": "Latte", "price": 4}},
        headers=headers,
    )

    assert response.status_code == 404


def test_delete_product_requires_service_400(client, owner, business) -> None:
    _, headers = owner

    response = client.delete(f"/api/businesses/{business['id']}/products/p1", json={}, headers=headers)

    assert response.status_code == 400


def test_products_only_managed_by_owner(client, business, customer) -> None:
    _, headers = customer

    response = _add(client, business["id"], headers, {"name": "Latte", "price": 4.5})

    assert response.status_code == 403


def test_product_write_on_missing_business_404(client, owner) -> None:
    _, headers = owner

    response = _add(client, 999, headers, {"name": "Latte", "price": 4.5})

    assert response.status_code == 404


def test_add_product_rejects_non_finite_price(client, owner, business) -> None:
    _, headers = owner

    for price in ("NaN", "Infinity", "-Infinity"):
        response = client.post(
            f"/api/businesses/{business['id']}/products",
            data=f'{{"service": "Coffee", "product": {{"name": "Latte", "price": {price}}}}}',
            content_type="application/json",
            headers=headers,
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_payload"

    stored = client.get(f"/api/businesses/{business['id']}", headers=headers).get_json()
    assert stored["products"]["Coffee"] == []


def test_update_product_rejects_non_finite_price(client, owner, business) -> None:
    _, headers = owner
    _add(client, business["id"], headers, {"id": "latte", "name": "Latte", "price": 4.5})

    response = client.put(
        f"/api/businesses/{business['id']}/products/latte",
        data='{"service": "Coffee", "product": {"name": "Latte", "price": NaN}}',
        content_type="application/json",
        headers=headers,
    )

    assert response.status_code == 400
    stored = client.get(f"/api/businesses/{business['id']}", headers=headers).get_json()
    assert stored["products"]["Coffee"][0]["price"] == 4.5


def test_product_routes_reject_non_object_body(client, owner, business) -> None:
    _, headers = owner

    response = client.post(f"/api/businesses/{business['id']}/products", json=["x"], headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"
