"""Audit trail of user-initiated mutations."""
from __future__ import annotations

from typing import NamedTuple

from .extensions import db
from .models import Activity, User

FEED_LIMIT = 10


class EntityRef(NamedTuple):
    """What an activity is about: a kind from ``ENTITY_KINDS`` and that entity's id."""

    kind: str
    id: str

    @classmethod
    def business(cls, business_id: int) -> "EntityRef":
        return cls("Business", str(business_id))

    @classmethod
    def service(cls, name: str) -> "EntityRef":
        return cls("Service", name)

    @classmethod
    def product(cls, product_id: str) -> "EntityRef":
        return cls("Product", product_id)

    @classmethod
    def review(cls, review_id: int) -> "EntityRef":
        return cls("Review", str(review_id))


def record_activity(
    actor: User,
    activity_type: str,
    description: str,
    business_id: int | None = None,
    entity: EntityRef | None = None,
) -> Activity:
    """Add an activity to the current transaction; the caller commits."""
    activity = Activity(
        user_id=actor.user_id,
        type=activity_type,
        description=description,
        business_id=business_id,
        entity_kind=entity.kind if entity else None,
        entity_id=entity.id if entity else None,
    )
    db.session.add(activity)
    return activity


def recent_activities(user_id: int, limit: int = FEED_LIMIT) -> list[Activity]:
    return (
        Activity.query.filter(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc(), Activity.activity_id.desc())
        .limit(limit)
        .all()
    )
