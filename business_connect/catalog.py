"""Rules for a business profile and its embedded service -> products catalog.

A business row carries its catalog in two JSON columns:

* ``services``: ordered, distinct service names, at most the configured ``MAX_SERVICES``.
* ``products``: service name -> ordered list of product dicts.

Every service has a bucket in ``products`` and there are no buckets for
unknown services. The helpers here mutate copies of those structures and
assign them back so the ORM sees the change; callers commit.
"""
from __future__ import annotations

import copy
import math
import re
import time
from numbers import Real

from .errors import ApiError, NotFound
from .models import BUSINESS_CATEGORIES, BUSINESS_THEMES, Business

PAGE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

_REQUIRED_TEXT_FIELDS = {"name": "name", "location": "location"}
_OPTIONAL_TEXT_FIELDS = {"description": "description", "website": "website"}


def _invalid(message: str, error: str = "invalid_payload") -> ApiError:
    return ApiError(error, message)


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _is_price(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def normalize_page_name(value: object) -> str:
    page_name = _text(value)
    if not page_name:
        raise _invalid("pageName is required")
    if not PAGE_NAME_RE.match(page_name) or not any(ch.isalpha() for ch in page_name):
        raise _invalid(
            "pageName may only contain letters, digits, '-' and '_' and must include a letter",
            "invalid_page_name",
        )
    return page_name


def validate_services(value: object, max_services: int) -> list[str]:
    """Return the services list as supplied, after checking shape, uniqueness and the cap."""
    if not isinstance(value, list):
        raise _invalid("services must be a list of names", "invalid_services")
    services = []
    for item in value:
        name = _text(item)
        if not name:
            raise _invalid("service names must be non-empty strings", "invalid_services")
        if name in services:
            raise _invalid(f"service {name!r} is listed more than once", "invalid_services")
        services.append(name)
    if len(services) > max_services:
        raise _invalid(f"maximum {max_services} services allowed", "invalid_services")
    return services


def reconcile_products(products: dict[str, list], services: list[str]) -> dict[str, list]:
    """Drop buckets for unknown services and add empty buckets for new ones."""
    reconciled = {service: list(products.get(service) or []) for service in services}
    return reconciled


def apply_services(business: Business, new_services: list[str]) -> tuple[list[str], list[str]]:
    """Replace ``business.services``, removing and creating product buckets to match.

    Returns ``(removed, added)`` in the order they appear in the old and new lists.
    """
    current = list(business.services or [])
    removed = [service for service in current if service not in new_services]
    added = [service for service in new_services if service not in current]

    products = copy.deepcopy(business.products or {})
    for service in removed:
        products.pop(service, None)
    for service in added:
        products.setdefault(service, [])

    business.services = list(new_services)
    business.products = reconcile_products(products, business.services)
    return removed, added


# --- Products ---------------------------------------------------------------


def _all_product_ids(products: dict[str, list]) -> set[str]:
    return {item.get("id") for items in products.values() for item in items}


def generate_product_id(taken: set[str], now_ms: int | None = None) -> str:
    """``p<epoch-ms>``, moved forward one millisecond at a time until it is free."""
    stamp = int(time.time() * 1000) if now_ms is None else now_ms
    while f"p{stamp}" in taken:
        stamp += 1
    return f"p{stamp}"


def _validate_product_payload(service: object, product: object) -> tuple[str, dict]:
    service_name = _text(service)
    if not service_name or not isinstance(product, dict) or not _text(product.get("name")):
        raise _invalid("service, product name, and price are required")
    price = product.get("price")
    if not _is_price(price) or price <= 0:
        raise _invalid("service, product name, and price are required")
    return service_name, product


def _require_service(business: Business, service: str) -> None:
    if service not in (business.services or []):
        raise ApiError("service_not_found", f"service {service!r} not found in business")


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _specifications(value: object) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    return {str(key): str(item) for key, item in value.items()}


def _sales(value: object) -> dict[str, float]:
    sales = value if isinstance(value, dict) else {}
    return {
        "quantity": sales.get("quantity", 0) if _is_price(sales.get("quantity")) else 0,
        "revenue": sales.get("revenue", 0) if _is_price(sales.get("revenue")) else 0,
    }


def build_product(product_id: str, data: dict, existing: dict | None = None) -> dict:
    """A product record from client ``data``; rating and sales only ever come from ``existing``."""
    existing = existing or {}
    in_stock = data.get("inStock")
    specifications = _specifications(data.get("specifications"))
    return {
        "id": product_id,
        "name": _text(data.get("name")),
        "price": data.get("price"),
        "description": _text(data.get("description")),
        "images": _string_list(data.get("images")),
        "rating": existing.get("rating", 0),
        "sales": _sales(existing.get("sales")),
        "category": _text(data.get("category")) or existing.get("category", ""),
        "inStock": in_stock if isinstance(in_stock, bool) else existing.get("inStock", True),
        "specifications": (
            specifications if specifications is not None else dict(existing.get("specifications") or {})
        ),
    }


def add_product(business: Business, service: object, product: object, now_ms: int | None = None) -> dict:
    service_name, data = _validate_product_payload(service, product)
    _require_service(business, service_name)

    products = copy.deepcopy(business.products or {})
    taken = _all_product_ids(products)
    supplied_id = _text(data.get("id"))
    if supplied_id and supplied_id in taken:
        raise ApiError("duplicate_product_id", f"product id {supplied_id!r} is already used in this business")
    product_id = supplied_id or generate_product_id(taken, now_ms)

    new_product = build_product(product_id, data)
    products.setdefault(service_name, []).append(new_product)
    business.products = products
    return new_product


def update_product(business: Business, service: object, product_id: str, product: object) -> dict:
    service_name, data = _validate_product_payload(service, product)
    _require_service(business, service_name)

    products = copy.deepcopy(business.products or {})
    items = products.get(service_name) or []
    for index, item in enumerate(items):
        if item.get("id") == product_id:
            updated = build_product(product_id, data, existing=item)
            items[index] = updated
            products[service_name] = items
            business.products = products
            return updated
    raise NotFound("product_not_found", "product not found")


def delete_product(business: Business, service: object, product_id: str) -> dict:
    """Remove a product from a service bucket and return it."""
    service_name = _text(service)
    if not service_name:
        raise _invalid("service is required")

    products = copy.deepcopy(business.products or {})
    items = products.get(service_name) or []
    remaining = [item for item in items if item.get("id") != product_id]
    if len(remaining) == len(items):
        raise NotFound("product_not_found", "product not found")

    removed = next(item for item in items if item.get("id") == product_id)
    products[service_name] = remaining
    business.products = products
    return removed


def replace_products(business: Business, value: object) -> None:
    """Wholesale replacement of the catalog, reconciled against ``business.services``.

    Rating and sales of a product whose id already exists in the business carry over.
    """
    if not isinstance(value, dict):
        raise _invalid("products must map service names to product lists", "invalid_products")

    existing_by_id = {
        item.get("id"): item for items in (business.products or {}).values() for item in items
    }

    # Reserve every client-supplied id before generating any.
    supplied: set[str] = set()
    for items in value.values():
        for data in items if isinstance(items, list) else []:
            product_id = _text(data.get("id")) if isinstance(data, dict) else ""
            if not product_id:
                continue
            if product_id in supplied:
                raise ApiError("duplicate_product_id", f"product id {product_id!r} is used more than once")
            supplied.add(product_id)

    taken = set(supplied)
    replaced: dict[str, list] = {}
    for service, items in value.items():
        if not isinstance(items, list):
            raise _invalid(f"products for {service!r} must be a list", "invalid_products")
        bucket = []
        for data in items:
            if not isinstance(data, dict) or not _text(data.get("name")):
                raise _invalid("every product needs a name", "invalid_products")
            price = data.get("price")
            if not _is_price(price) or price < 0:
                raise _invalid("every product needs a non-negative price", "invalid_products")
            product_id = _text(data.get("id")) or generate_product_id(taken)
            taken.add(product_id)
            bucket.append(build_product(product_id, data, existing=existing_by_id.get(product_id)))
        replaced[str(service)] = bucket

    business.products = reconcile_products(replaced, list(business.services or []))


def find_product(business: Business, service: str, product_id: str) -> dict:
    for item in (business.products or {}).get(service) or []:
        if item.get("id") == product_id:
            return item
    raise NotFound("product_not_found", "product not found")


# --- Profile fields ---------------------------------------------------------


def _contact(value: object) -> tuple[str, str]:
    if not isinstance(value, dict):
        raise _invalid("contact phone and email are required")
    phone, email = _text(value.get("phone")), _text(value.get("email"))
    if not phone or not email:
        raise _invalid("contact phone and email are required")
    return phone, email


def _choice(value: object, allowed: tuple[str, ...], field: str) -> str:
    choice = value if isinstance(value, str) else ""
    if choice not in allowed:
        raise _invalid(f"{field} must be one of: {', '.join(repr(item) for item in allowed)}", f"invalid_{field}")
    return choice


def apply_profile(business: Business, payload: dict, *, creating: bool) -> str | None:
    """Apply the profile fields present in ``payload``.

    A key that is present is applied, including ``null``/``""`` for optional
    fields; absent keys leave the stored value alone. Required fields cannot be
    cleared. On create every required field must be present.

    Returns the previous custom icon URL when it was replaced or cleared, so the
    caller can release it on the image host after committing.
    """
    for key, attr in _REQUIRED_TEXT_FIELDS.items():
        if key in payload or creating:
            value = _text(payload.get(key))
            if not value:
                raise _invalid(f"{key} is required")
            setattr(business, attr, value)

    if "contact" in payload or creating:
        business.contact_phone, business.contact_email = _contact(payload.get("contact"))

    if "pageName" in payload or creating:
        page_name = normalize_page_name(payload.get("pageName"))
        business.page_name = page_name
        business.page_name_key = page_name.lower()

    for key, attr in _OPTIONAL_TEXT_FIELDS.items():
        if key in payload:
            setattr(business, attr, _text(payload.get(key)))

    if "theme" in payload:
        business.theme = _choice(payload.get("theme") or "", BUSINESS_THEMES, "theme")
    if "category" in payload:
        business.category = _choice(payload.get("category") or "", BUSINESS_CATEGORIES, "category")

    if "hours" in payload:
        hours = payload.get("hours") or {}
        if not isinstance(hours, dict):
            raise _invalid("hours must map days to opening times")
        business.hours = {str(day): str(value) for day, value in hours.items()}
    if "images" in payload:
        business.images = _string_list(payload.get("images"))
    if "isOpen" in payload:
        if not isinstance(payload.get("isOpen"), bool):
            raise _invalid("isOpen must be a boolean")
        business.is_open = payload["isOpen"]

    return _apply_icon(business, payload)


def _apply_icon(business: Business, payload: dict) -> str | None:
    previous_custom = business.custom_icon
    has_icon, has_custom = "icon" in payload, "customIcon" in payload
    icon = _text(payload.get("icon"))
    custom_icon = _text(payload.get("customIcon"))

    if has_icon and has_custom and icon and custom_icon:
        raise _invalid("icon and customIcon are mutually exclusive", "invalid_icon")

    if has_custom:
        business.custom_icon = custom_icon or None
        if custom_icon:
            business.icon = ""
    if has_icon:
        business.icon = icon
        if icon:
            business.custom_icon = None

    if previous_custom and previous_custom != business.custom_icon:
        return previous_custom
    return None
