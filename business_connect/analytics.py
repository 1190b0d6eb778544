"""Per-business view/inquiry counters."""
from __future__ import annotations

from collections.abc import Iterable

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .models import Analytics, Business, utc_now


def _increment_views(business_id: int) -> int:
    result = db.session.execute(
        update(Analytics)
        .where(Analytics.business_id == business_id)
        .values(profile_views=Analytics.profile_views + 1, last_updated=utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def record_view(business_id: int) -> None:
    """Count one profile view, creating the counter row with 1 if it does not exist.

    Every call is a write; there is no de-duplication by viewer or time window.
    Commits.
    """
    if _increment_views(business_id):
        db.session.commit()
        return

    try:
        with db.session.begin_nested():
            db.session.add(Analytics(business_id=business_id, profile_views=1, last_updated=utc_now()))
    except IntegrityError:
        # Another request created the row first.
        _increment_views(business_id)
    db.session.commit()


def record_list_views(business_ids: Iterable[int]) -> None:
    """Apply the configured list-view policy to the businesses a list endpoint returned."""
    policy = current_app.config.get("LIST_VIEW_POLICY", "per_item")
    if policy == "none":
        return
    if policy != "per_item":
        raise ValueError(f"unknown LIST_VIEW_POLICY {policy!r}")
    for business_id in business_ids:
        record_view(business_id)


def owner_stats(owner_id: int) -> dict[str, int]:
    """Views, inquiries and services offered, summed over one owner's businesses."""
    views, inquiries = (
        db.session.query(
            func.coalesce(func.sum(Analytics.profile_views), 0),
            func.coalesce(func.sum(Analytics.inquiries), 0),
        )
        .join(Business, Business.business_id == Analytics.business_id)
        .filter(Business.owner_id == owner_id)
        .one()
    )
    services_offered = sum(
        len(services or [])
        for (services,) in db.session.query(Business.services).filter(Business.owner_id == owner_id)
    )
    return {
        "profileViews": int(views),
        "inquiries": int(inquiries),
        "servicesOffered": services_offered,
    }
