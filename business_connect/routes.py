"""HTTP routes for businesses, their product catalog and reviews."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from . import analytics, catalog, media
from .activity import EntityRef, record_activity
from .auth import require_auth
from .errors import ApiError, NotFound, json_body
from .extensions import db
from .models import Analytics, Business, Review
from .policy import authorize

bp = Blueprint("api", __name__)
bp_businesses = Blueprint("businesses", __name__)


def register_routes(app: Flask) -> None:
    from .routes_users import bp_users

    app.register_blueprint(bp)
    app.register_blueprint(bp_users, url_prefix="/api/users")
    app.register_blueprint(bp_businesses, url_prefix="/api/businesses")


def _database_error(exc: SQLAlchemyError, message: str) -> tuple[dict[str, str], int]:
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"error": "database_error"}), 500


def _get_business(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFound("business_not_found", "business not found")
    return business


def _page_name_taken(page_name_key: str, exclude_id: int | None = None) -> bool:
    # Pending profile edits must not be flushed before the unique index is consulted.
    with db.session.no_autoflush:
        query = Business.query.filter(Business.page_name_key == page_name_key)
        if exclude_id is not None:
            query = query.filter(Business.business_id != exclude_id)
        return db.session.query(query.exists()).scalar()


def _page_name_conflict() -> tuple[dict[str, str], int]:
    return jsonify({"error": "page_name_taken", "message": "pageName is already in use"}), 400


def _check_expected_version(business: Business) -> None:
    expected = request.headers.get("If-Match", "").strip().strip('"')
    if expected and expected != str(business.version):
        raise ApiError(
            "version_conflict",
            f"business is at version {business.version}, not {expected}",
            409,
        )


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Businesses ---------------------------------------------------------------


@bp_businesses.post("")
@require_auth
def create_business() -> tuple[dict[str, object], int]:
    """Create a business profile owned by the caller.
    ---
    tags:
      - Businesses
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
              example: Bean There
            contact:
              type: object
              properties:
                phone:
                  type: string
                email:
                  type: string
            location:
              type: string
            pageName:
              type: string
              example: bean-there
            services:
              type: array
              items:
                type: string
              maxItems: 5
          required:
            - name
            - contact
            - location
            - pageName
    responses:
      201:
        description: Business created
      400:
        description: Invalid payload or pageName already taken
      403:
        description: Caller is not a business owner
      500:
        description: Database error
    """
    actor = g.current_user
    authorize(actor, "business:create")

    payload = json_body()

    business = Business(owner_id=actor.user_id, services=[], products={}, hours={}, images=[])
    catalog.apply_profile(business, payload, creating=True)
    services = catalog.validate_services(
        payload.get("services") or [], current_app.config["MAX_SERVICES"]
    )
    business.services = services
    business.products = {service: [] for service in services}

    if _page_name_taken(business.page_name_key):
        return _page_name_conflict()

    try:
        db.session.add(business)
        db.session.flush()

        db.session.add(Analytics(business_id=business.business_id))
        record_activity(
            actor,
            "business_create",
            f"{actor.name} created business: {business.name}",
            business_id=business.business_id,
            entity=EntityRef.business(business.business_id),
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _page_name_conflict()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create business")

    current_app.logger.info("Business %s created by user %s", business.business_id, actor.user_id)
    return jsonify(business.to_dict()), 201


@bp_businesses.get("")
@require_auth
def list_own_businesses() -> tuple[list[dict[str, object]], int]:
    """List the caller's businesses; counts a view for each under the list-view policy.
    ---
    tags:
      - Businesses
    responses:
      200:
        description: Businesses owned by the caller
      403:
        description: Caller is not a business owner
    """
    actor = g.current_user
    authorize(actor, "business:list_own")

    try:
        businesses = (
            Business.query.filter(Business.owner_id == actor.user_id)
            .order_by(Business.business_id)
            .all()
        )
        payload = [business.to_dict() for business in businesses]
        analytics.record_list_views([business.business_id for business in businesses])
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch businesses")

    return jsonify(payload), 200


@bp_businesses.get("/get-all")
def list_all_businesses() -> tuple[dict[str, object], int]:
    """Public catalog of every business with a reduced projection.
    ---
    tags:
      - Businesses
    responses:
      200:
        description: All businesses and their count
      500:
        description: Database error
    """
    try:
        businesses = Business.query.order_by(Business.business_id).all()
        listing = [business.to_dict_listing() for business in businesses]
        analytics.record_list_views([business.business_id for business in businesses])
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch business catalog")

    return jsonify({"businesses": listing, "totalBusinesses": len(listing)}), 200


@bp_businesses.get("/stats")
@require_auth
def get_business_stats() -> tuple[dict[str, int], int]:
    """Views, inquiries and services offered across the caller's businesses.
    ---
    tags:
      - Businesses
    responses:
      200:
        description: Aggregated counters
      403:
        description: Caller is not a business owner
    """
    actor = g.current_user
    authorize(actor, "business:stats")

    try:
        stats = analytics.owner_stats(actor.user_id)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to compute business stats")

    return jsonify(stats), 200


@bp_businesses.get("/<int:business_id>")
@require_auth
def get_business(business_id: int) -> tuple[dict[str, object], int]:
    """Fetch one business by id (owner or admin); counts a profile view.
    ---
    tags:
      - Businesses
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Full business profile
      403:
        description: Caller is neither owner nor admin
      404:
        description: Business not found
    """
    business = _get_business(business_id)
    authorize(g.current_user, "business:read", business)

    payload = business.to_dict()
    try:
        analytics.record_view(business.business_id)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to record profile view")

    return jsonify(payload), 200


@bp_businesses.get("/<page_name>")
def get_business_by_page_name(page_name: str) -> tuple[dict[str, object], int]:
    """Public lookup of a business by its vanity page name (case-insensitive).
    ---
    tags:
      - Businesses
    parameters:
      - name: page_name
        in: path
        type: string
        required: true
    responses:
      200:
        description: Full business profile
      404:
        description: Business not found
    """
    business = Business.query.filter(Business.page_name_key == page_name.strip().lower()).first()
    if business is None:
        return jsonify({"error": "business_not_found", "message": "business not found"}), 404

    payload = business.to_dict()
    try:
        analytics.record_view(business.business_id)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to record profile view")

    return jsonify(payload), 200


@bp_businesses.put("/<int:business_id>")
@require_auth
def update_business(business_id: int) -> tuple[dict[str, object], int]:
    """Update a business (owner or admin).

    Keys present in the body are applied; ``services`` is diffed against the
    stored list and ``products`` replaces the catalog, reconciled to the final
    services list. An ``If-Match`` header may carry the expected ``version``.
    ---
    tags:
      - Businesses
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
      - name: If-Match
        in: header
        type: string
        required: false
    responses:
      200:
        description: Updated business
      400:
        description: Invalid payload
      403:
        description: Caller is neither owner nor admin
      404:
        description: Business not found
      409:
        description: Business changed since it was read
    """
    actor = g.current_user
    business = _get_business(business_id)
    authorize(actor, "business:update", business)
    _check_expected_version(business)

    payload = json_body()

    released_icon = catalog.apply_profile(business, payload, creating=False)
    if "pageName" in payload and _page_name_taken(business.page_name_key, business.business_id):
        db.session.rollback()
        return _page_name_conflict()

    if "services" in payload:
        services = catalog.validate_services(payload["services"], current_app.config["MAX_SERVICES"])
        removed, added = catalog.apply_services(business, services)
        for service in removed:
            record_activity(
                actor,
                "service_delete",
                f"{actor.name} removed service: {service} from business: {business.name}",
                business_id=business.business_id,
                entity=EntityRef.service(service),
            )
        for service in added:
            record_activity(
                actor,
                "service_add",
                f"{actor.name} added service: {service} to business: {business.name}",
                business_id=business.business_id,
                entity=EntityRef.service(service),
            )

    if "products" in payload:
        catalog.replace_products(business, payload["products"])

    record_activity(
        actor,
        "business_update",
        f"{actor.name} updated business: {business.name}",
        business_id=business.business_id,
        entity=EntityRef.business(business.business_id),
    )

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _page_name_conflict()
    except StaleDataError:
        raise
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update business")

    if released_icon:
        media.release_business_icon(released_icon)

    return jsonify(business.to_dict()), 200


@bp_businesses.delete("/<int:business_id>")
@require_auth
def delete_business(business_id: int) -> tuple[dict[str, str], int]:
    """Delete a business with its analytics and reviews (owner or admin).
    ---
    tags:
      - Businesses
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Business deleted
      403:
        description: Caller is neither owner nor admin
      404:
        description: Business not found
    """
    actor = g.current_user
    business = _get_business(business_id)
    authorize(actor, "business:delete", business)

    custom_icon = business.custom_icon

    try:
        Analytics.query.filter(Analytics.business_id == business.business_id).delete()
        Review.query.filter(Review.business_id == business.business_id).delete()
        record_activity(
            actor,
            "business_delete",
            f"{actor.name} deleted business: {business.name}",
            business_id=business.business_id,
            entity=EntityRef.business(business.business_id),
        )
        db.session.delete(business)
        db.session.commit()
    except StaleDataError:
        raise
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete business")

    if custom_icon:
        media.release_business_icon(custom_icon)

    current_app.logger.info("Business %s deleted by user %s", business_id, actor.user_id)
    return jsonify({"message": "Business deleted successfully"}), 200


# --- Products -----------------------------------------------------------------


def _save_catalog_change(business: Business, message: str):
    try:
        db.session.commit()
    except StaleDataError:
        raise
    except SQLAlchemyError as exc:
        return _database_error(exc, message)
    return None


@bp_businesses.post("/<int:business_id>/products")
@require_auth
def add_product(business_id: int) -> tuple[dict[str, object], int]:
    """Add a product to one of the business's services.
    ---
    tags:
      - Products
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            service:
              type: string
              example: Coffee
            product:
              type: object
              properties:
                id:
                  type: string
                name:
                  type: string
                  example: Latte
                price:
                  type: number
                  example: 4.5
    responses:
      201:
        description: Business with the new product
      400:
        description: Missing fields, unknown service or duplicate id
      404:
        description: Business not found
    """
    actor = g.current_user
    payload = json_body()
    business = _get_business(business_id)
    authorize(actor, "product:write", business)

    service = payload.get("service")
    product = catalog.add_product(business, service, payload.get("product"))
    record_activity(
        actor,
        "product_add",
        f"{actor.name} added product: {product['name']} to service: {service} in business: {business.name}",
        business_id=business.business_id,
        entity=EntityRef.product(product["id"]),
    )

    failure = _save_catalog_change(business, "Failed to add product")
    if failure:
        return failure
    return jsonify(business.to_dict()), 201


@bp_businesses.put("/<int:business_id>/products/<product_id>")
@require_auth
def update_product(business_id: int, product_id: str) -> tuple[dict[str, object], int]:
    """Replace a product's editable fields; rating and sales are kept.
    ---
    tags:
      - Products
    responses:
      200:
        description: Business with the updated product
      400:
        description: Missing fields or unknown service
      404:
        description: Business or product not found
    """
    actor = g.current_user
    payload = json_body()
    business = _get_business(business_id)
    authorize(actor, "product:write", business)

    service = payload.get("service")
    product = catalog.update_product(business, service, product_id, payload.get("product"))
    record_activity(
        actor,
        "product_update",
        f"{actor.name} updated product: {product['name']} in service: {service} for business: {business.name}",
        business_id=business.business_id,
        entity=EntityRef.product(product_id),
    )

    failure = _save_catalog_change(business, "Failed to update product")
    if failure:
        return failure
    return jsonify(business.to_dict()), 200


@bp_businesses.delete("/<int:business_id>/products/<product_id>")
@require_auth
def delete_product(business_id: int, product_id: str) -> tuple[dict[str, object], int]:
    """Remove a product; the service it lives under is passed in the body.
    ---
    tags:
      - Products
    responses:
      200:
        description: Business without the product
      400:
        description: Service missing from the body
      404:
        description: Business or product not found
    """
    actor = g.current_user
    payload = json_body()
    service = payload.get("service")
    if not isinstance(service, str) or not service.strip():
        return jsonify({"error": "invalid_payload", "message": "service is required"}), 400

    business = _get_business(business_id)
    authorize(actor, "product:write", business)

    removed = catalog.delete_product(business, service, product_id)
    record_activity(
        actor,
        "product_delete",
        f"{actor.name} deleted product: {removed['name']} from service: {service} in business: {business.name}",
        business_id=business.business_id,
        entity=EntityRef.product(product_id),
    )

    failure = _save_catalog_change(business, "Failed to delete product")
    if failure:
        return failure
    return jsonify(business.to_dict()), 200


# --- Reviews ------------------------------------------------------------------


def _already_reviewed() -> tuple[dict[str, str], int]:
    return (
        jsonify({"error": "already_reviewed", "message": "You have already reviewed this business"}),
        400,
    )


@bp_businesses.get("/<int:business_id>/reviews")
def get_business_reviews(business_id: int) -> tuple[list[dict[str, object]], int]:
    """Reviews of a business, newest first.
    ---
    tags:
      - Reviews
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: List of reviews
      404:
        description: Business not found
    """
    try:
        _get_business(business_id)
        reviews = (
            Review.query.options(joinedload(Review.author))
            .filter(Review.business_id == business_id)
            .order_by(Review.created_at.desc(), Review.review_id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch reviews")

    return jsonify([review.to_dict() for review in reviews]), 200


@bp_businesses.post("/<int:business_id>/reviews")
@require_auth
def create_review(business_id: int) -> tuple[dict[str, object], int]:
    """Leave a review; one per user and business.
    ---
    tags:
      - Reviews
    parameters:
      - name: business_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          properties:
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
    responses:
      201:
        description: Review created
      400:
        description: Invalid rating or already reviewed
      404:
        description: Business not found
      500:
        description: Database error
    """
    actor = g.current_user
    authorize(actor, "review:create")

    payload = json_body()
    rating = payload.get("rating")
    comment = payload.get("comment")
    comment = comment.strip() if isinstance(comment, str) else ""

    if not isinstance(rating, int) or isinstance(rating, bool) or rating < 1 or rating > 5:
        return (
            jsonify({
                "error": "invalid_rating",
                "message": "Rating is required and must be an integer between 1 and 5",
            }),
            400,
        )

    business = _get_business(business_id)

    if Review.query.filter_by(business_id=business_id, user_id=actor.user_id).first():
        return _already_reviewed()

    try:
        review = Review(
            business_id=business_id,
            user_id=actor.user_id,
            user_name=actor.name,
            user_avatar=actor.profile_picture or "",
            rating=rating,
            comment=comment,
        )
        db.session.add(review)
        db.session.flush()
        db.session.execute(
            update(Business)
            .where(Business.business_id == business_id)
            .values(
                rating_total=Business.rating_total + rating,
                review_count=Business.review_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        record_activity(
            actor,
            "review_create",
            f"{actor.name} left a {rating}-star review for business: {business.name}",
            business_id=business_id,
            entity=EntityRef.review(review.review_id),
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _already_reviewed()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create review")

    return jsonify(review.to_dict()), 201
